"""
Pooled PostgreSQL access for the invoice, admin and audit tables.

One PostgresClient per process, owned by PersistentStorage. Rows come back
as plain dicts. Parameters may contain UUIDs (sent as text) and dicts or
lists (sent as JSONB, e.g. invoice line items and audit diffs).
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

Params = Tuple | Dict | None


def _adapt(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (dict, list)):
        return psycopg2.extras.Json(value)
    return value


def adapt_params(params: Params) -> Params:
    """Prepare query parameters for psycopg2."""
    if params is None:
        return None
    if isinstance(params, dict):
        return {name: _adapt(value) for name, value in params.items()}
    return tuple(_adapt(value) for value in params)


class PostgresClient:
    """
    Thread-safe pool of connections to one database.

    Opening the pool connects immediately, so an unreachable server raises
    psycopg2.OperationalError from the constructor.
    """

    def __init__(
        self,
        database_url: str,
        min_connections: int = 2,
        max_connections: int = 10,
        connect_timeout: int = 30,
    ):
        self._pool: psycopg2.pool.ThreadedConnectionPool | None = psycopg2.pool.ThreadedConnectionPool(
            minconn=min_connections,
            maxconn=max_connections,
            dsn=database_url,
            connect_timeout=connect_timeout,
        )
        logger.info("PostgreSQL pool opened (%d-%d connections)", min_connections, max_connections)

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """A pooled connection; rolled back if the block raises, always returned."""
        if self._pool is None:
            raise RuntimeError("Connection pool is closed")

        conn = self._pool.getconn()
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Run one statement in its own transaction. Returns [] when there is no result set."""
        with self.connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, adapt_params(params))
                rows = [dict(row) for row in cur.fetchall()] if cur.description else []
            conn.commit()
        return rows

    def execute_single(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        rows = self.execute(query, params)
        return rows[0] if rows else None

    def execute_returning(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Writes with a RETURNING clause; same as execute()."""
        return self.execute(query, params)

    def ping(self) -> bool:
        """SELECT 1. Raises psycopg2.Error if the database doesn't answer."""
        with self.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
        return True

    def close(self) -> None:
        """Close every pooled connection. Later calls are no-ops."""
        if self._pool is None:
            return
        self._pool.closeall()
        self._pool = None
        logger.info("PostgreSQL pool closed")
