"""
Storage capability model.

Two kinds of storage exist:

- PersistentStorage: the PostgreSQL database. Reads and writes.
- ReadOnlyFallbackStorage: canned records served when the database is
  unreachable. Reads only.

Code that must never run against canned data (invoice writes) depends on
PersistentStorage by type. Code that can degrade (admin identity lookup)
accepts either and checks which one it was handed.

PersistentStorage is an explicitly constructed service object with an
init()/shutdown() lifecycle; the application owns one instance.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Tuple

import psycopg2

from clients.postgres_client import PostgresClient
from core.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)


class Storage(ABC):
    """Something records can be read from."""

    @property
    @abstractmethod
    def available(self) -> bool:
        """Whether the storage can currently serve requests."""


class PersistentStorage(Storage):
    """
    Durable storage backed by PostgreSQL.

    Connection is attempted in init() with exponential backoff. If every
    attempt fails the instance stays unavailable and every query raises
    StorageUnavailableError; the process keeps running so that endpoints
    with a fallback can still answer.

    Usage:
        storage = PersistentStorage(database_url)
        storage.init()
        rows = storage.execute("SELECT * FROM invoices")
        storage.shutdown()
    """

    def __init__(
        self,
        database_url: str | None,
        retries: int = 3,
        client_factory: Callable[[str], PostgresClient] = PostgresClient,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._database_url = database_url
        self._retries = retries
        self._client_factory = client_factory
        self._sleep = sleep
        self._client: PostgresClient | None = None

    @property
    def available(self) -> bool:
        return self._client is not None

    def init(self) -> bool:
        """
        Connect to the database.

        Returns:
            True if connected, False if all attempts failed.
        """
        if self._client is not None:
            return True

        if not self._database_url:
            logger.warning("No database URL configured; persistent storage unavailable")
            return False

        for attempt in range(1, self._retries + 1):
            try:
                logger.info("Connecting to database (attempt %d/%d)", attempt, self._retries)
                self._client = self._client_factory(self._database_url)
                logger.info("Database connected")
                return True
            except psycopg2.Error as e:
                logger.error("Database connection attempt %d failed: %s", attempt, e)
                if attempt < self._retries:
                    self._sleep(min(2 ** (attempt - 1), 5))

        logger.warning(
            "Failed to connect to database after %d attempts; "
            "endpoints requiring the database will return 503",
            self._retries,
        )
        return False

    def shutdown(self) -> None:
        """Close the connection pool. Safe to call when never connected."""
        if self._client is not None:
            self._client.close()
            self._client = None

    @property
    def client(self) -> PostgresClient:
        """
        The live database client.

        Raises:
            StorageUnavailableError: If the database is not connected.
        """
        if self._client is None:
            raise StorageUnavailableError("Database not connected")
        return self._client

    def _run(self, method: str, query: str, params: Tuple | Dict | None) -> Any:
        client = self.client
        try:
            return getattr(client, method)(query, params)
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            logger.error("Database error: %s", e)
            raise StorageUnavailableError("Database unavailable") from e

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts."""
        return self._run("execute", query, params)

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        return self._run("execute_single", query, params)

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute a write with RETURNING, return results."""
        return self._run("execute_returning", query, params)

    def ping(self) -> bool:
        """True if connected and the database answers."""
        if self._client is None:
            return False
        try:
            return self._client.ping()
        except psycopg2.Error:
            return False


class ReadOnlyFallbackStorage(Storage):
    """
    Canned records keyed by collection name.

    Always available. Read-only: there is no write method.
    """

    def __init__(self, records: Dict[str, List[Dict[str, Any]]] | None = None):
        self._records = {name: list(rows) for name, rows in (records or {}).items()}

    @property
    def available(self) -> bool:
        return True

    def find(self, collection: str, **filters: Any) -> List[Dict[str, Any]]:
        """Records in ``collection`` whose fields equal every filter value."""
        return [
            dict(row)
            for row in self._records.get(collection, [])
            if all(row.get(field) == value for field, value in filters.items())
        ]

    def find_one(self, collection: str, **filters: Any) -> Dict[str, Any] | None:
        """First matching record or None."""
        matches = self.find(collection, **filters)
        return matches[0] if matches else None
