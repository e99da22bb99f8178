"""Security events for admin sign-in, sessions and rate limiting.

Each event is written to the ``encore.security`` logger and, when the
database is up, appended to the security_events table. The insert is
best-effort: an auth request never fails because its event could not be
stored.
"""

import logging
from enum import Enum
from typing import Any

import psycopg2

from core.exceptions import StorageUnavailableError
from core.storage import PersistentStorage
from utils.timezone import now_utc

logger = logging.getLogger("encore.security")


class SecurityEvent(Enum):
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    FALLBACK_LOGIN = "fallback_login"
    TOKEN_REFRESHED = "token_refreshed"
    REFRESH_FAILED = "refresh_failed"
    LOGGED_OUT = "logged_out"
    ACCESS_DENIED = "access_denied"
    RATE_LIMITED = "rate_limited"
    ADMIN_CREATED = "admin_created"
    PASSWORD_RESET = "password_reset"

    @property
    def level(self) -> int:
        """WARNING for anything an operator may want to look into."""
        return logging.WARNING if self in _SUSPICIOUS else logging.INFO


# Fallback logins are flagged because they mean the database was down.
_SUSPICIOUS = frozenset({
    SecurityEvent.LOGIN_FAILED,
    SecurityEvent.FALLBACK_LOGIN,
    SecurityEvent.REFRESH_FAILED,
    SecurityEvent.ACCESS_DENIED,
    SecurityEvent.RATE_LIMITED,
})

_INSERT = """
    INSERT INTO security_events
        (event_type, email, user_id, ip_address, user_agent, details, created_at)
    VALUES (%s, %s, %s, %s, %s, %s, %s)
"""


class SecurityLogger:

    def __init__(self, storage: PersistentStorage):
        self._storage = storage

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        logger.log(
            event.level,
            "%s email=%s user_id=%s ip=%s details=%s",
            event.value, email, user_id, ip_address, details or {},
        )
        if self._storage.available:
            self._store(event, (event.value, email, user_id, ip_address, user_agent, details, now_utc()))

    def _store(self, event: SecurityEvent, row: tuple) -> None:
        try:
            self._storage.execute(_INSERT, row)
        except (StorageUnavailableError, psycopg2.Error) as e:
            logger.error("Could not store %s event: %s", event.value, e)
