"""Authentication configuration."""

import os
from typing import Mapping

from pydantic import BaseModel, Field

# Development-only signing secrets. Refused in production.
DEV_ACCESS_SECRET = "your-secret-key-change-in-production"
DEV_REFRESH_SECRET = "your-refresh-secret-key-change-in-production"


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    Durations are in their natural units (minutes for short durations,
    days for longer ones) to make configuration intuitive.
    """

    environment: str = Field(
        default="development",
        description="Deployment environment; 'production' enables strict secret checks",
    )

    # Token settings
    jwt_secret: str | None = Field(default=None, repr=False)
    jwt_refresh_secret: str | None = Field(default=None, repr=False)
    access_token_expiry_minutes: int = Field(
        default=60,
        description="Access token lifetime",
        ge=1,
        le=1440,
    )
    refresh_token_expiry_days: int = Field(
        default=7,
        description="Refresh token lifetime (also the refresh cookie max-age)",
        ge=1,
        le=90,
    )
    refresh_cookie_name: str = Field(default="refreshToken")

    # Rate limiting
    rate_limit_window_minutes: int = Field(
        default=15,
        description="Fixed window length shared by both policies",
        ge=1,
        le=60,
    )
    general_rate_limit: int = Field(
        default=100,
        description="Requests per window per IP on admin routes",
        ge=1,
    )
    auth_rate_limit: int = Field(
        default=5,
        description="Login/refresh attempts per window per IP",
        ge=1,
        le=20,
    )
    rate_limit_sweep_minutes: int = Field(
        default=15,
        description="How often expired windows are discarded",
        ge=1,
    )

    # Fallback admin, used only while the database is unreachable.
    # No fallback identity exists unless a password is configured.
    fallback_admin_email: str = Field(default="admin@example.com")
    fallback_admin_name: str = Field(default="Admin User")
    fallback_admin_password: str | None = Field(default=None, repr=False)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "AuthConfig":
        """Build config from environment variables, keeping defaults for unset ones."""
        env = os.environ if env is None else env

        mapping = {
            "environment": "APP_ENV",
            "jwt_secret": "JWT_SECRET",
            "jwt_refresh_secret": "JWT_REFRESH_SECRET",
            "access_token_expiry_minutes": "JWT_EXPIRES_MINUTES",
            "refresh_token_expiry_days": "JWT_REFRESH_EXPIRES_DAYS",
            "general_rate_limit": "RATE_LIMIT_MAX",
            "auth_rate_limit": "AUTH_RATE_LIMIT_MAX",
            "fallback_admin_email": "FALLBACK_ADMIN_EMAIL",
            "fallback_admin_name": "FALLBACK_ADMIN_NAME",
            "fallback_admin_password": "FALLBACK_ADMIN_PASSWORD",
        }
        values = {field: env[var] for field, var in mapping.items() if env.get(var)}
        return cls(**values)
