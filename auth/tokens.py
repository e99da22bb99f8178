"""Signed, expiring access and refresh tokens (HS256 JWTs).

Access and refresh tokens are signed with different secrets, so one can never
be presented as the other. Both carry ``{userId, email}``.

Secrets are resolved on first use, not at import. In production a missing
secret, or one still set to the development placeholder, raises
ConfigurationError and aborts the operation.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from jose import JWTError, jwt
from pydantic import ValidationError as PayloadError

from auth.config import AuthConfig, DEV_ACCESS_SECRET, DEV_REFRESH_SECRET
from auth.exceptions import ConfigurationError, InvalidTokenError
from auth.types import TokenPair, TokenPayload
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class TokenIssuer:
    """Mints and verifies access and refresh tokens."""

    def __init__(self, config: AuthConfig, clock: Callable[[], datetime] = now_utc):
        self._config = config
        self._clock = clock
        self._access_secret: str | None = None
        self._refresh_secret: str | None = None

    def _resolve_secret(self, value: str | None, placeholder: str, env_name: str) -> str:
        if self._config.is_production and (not value or value == placeholder):
            logger.critical("%s is missing or a placeholder in production", env_name)
            raise ConfigurationError(f"{env_name} must be set in production environment")
        return value or placeholder

    @property
    def access_secret(self) -> str:
        if self._access_secret is None:
            self._access_secret = self._resolve_secret(
                self._config.jwt_secret, DEV_ACCESS_SECRET, "JWT_SECRET"
            )
        return self._access_secret

    @property
    def refresh_secret(self) -> str:
        if self._refresh_secret is None:
            self._refresh_secret = self._resolve_secret(
                self._config.jwt_refresh_secret, DEV_REFRESH_SECRET, "JWT_REFRESH_SECRET"
            )
        return self._refresh_secret

    def _encode(self, payload: TokenPayload, secret: str, lifetime: timedelta) -> str:
        issued_at = self._clock()
        claims = {
            "userId": payload.user_id,
            "email": payload.email,
            "iat": issued_at,
            "exp": issued_at + lifetime,
        }
        return jwt.encode(claims, secret, algorithm=ALGORITHM)

    def _decode(self, token: str, secret: str) -> TokenPayload:
        try:
            claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
            return TokenPayload(user_id=claims["userId"], email=claims["email"])
        except (JWTError, KeyError, TypeError, PayloadError) as e:
            logger.debug("Token rejected: %s", e)
            raise InvalidTokenError() from e

    def issue_access_token(self, payload: TokenPayload) -> str:
        return self._encode(
            payload,
            self.access_secret,
            timedelta(minutes=self._config.access_token_expiry_minutes),
        )

    def issue_refresh_token(self, payload: TokenPayload) -> str:
        return self._encode(
            payload,
            self.refresh_secret,
            timedelta(days=self._config.refresh_token_expiry_days),
        )

    def issue_pair(self, payload: TokenPayload) -> TokenPair:
        """Access and refresh token for a fresh login."""
        return TokenPair(
            access_token=self.issue_access_token(payload),
            refresh_token=self.issue_refresh_token(payload),
        )

    def verify_access_token(self, token: str) -> TokenPayload:
        """
        Raises:
            InvalidTokenError: Bad signature, expired, or malformed.
            ConfigurationError: Production secret not configured.
        """
        return self._decode(token, self.access_secret)

    def verify_refresh_token(self, token: str) -> TokenPayload:
        """
        Raises:
            InvalidTokenError: Bad signature, expired, or malformed.
            ConfigurationError: Production secret not configured.
        """
        return self._decode(token, self.refresh_secret)
