"""Tests for auth/config.py - Auth configuration with validation."""

import pytest
from pydantic import ValidationError

from auth.config import AuthConfig


class TestAuthConfigDefaults:
    """Tests that AuthConfig has sensible defaults."""

    def test_token_expiry_defaults(self):
        config = AuthConfig()
        assert config.access_token_expiry_minutes == 60
        assert config.refresh_token_expiry_days == 7

    def test_rate_limit_defaults(self):
        config = AuthConfig()
        assert config.general_rate_limit == 100
        assert config.auth_rate_limit == 5
        assert config.rate_limit_window_minutes == 15

    def test_no_fallback_password_by_default(self):
        assert AuthConfig().fallback_admin_password is None

    def test_development_by_default(self):
        assert AuthConfig().is_production is False


class TestAuthConfigValidation:
    """Tests that AuthConfig enforces validation bounds."""

    def test_access_expiry_min_bound(self):
        with pytest.raises(ValidationError):
            AuthConfig(access_token_expiry_minutes=0)

    def test_access_expiry_max_bound(self):
        with pytest.raises(ValidationError):
            AuthConfig(access_token_expiry_minutes=1441)

    def test_refresh_expiry_max_bound(self):
        with pytest.raises(ValidationError):
            AuthConfig(refresh_token_expiry_days=91)

    def test_auth_rate_limit_max_bound(self):
        with pytest.raises(ValidationError):
            AuthConfig(auth_rate_limit=21)


class TestAuthConfigFromEnv:
    """Tests for building config from environment variables."""

    def test_reads_values(self):
        config = AuthConfig.from_env({
            "APP_ENV": "Production",
            "JWT_SECRET": "access",
            "JWT_REFRESH_SECRET": "refresh",
            "JWT_EXPIRES_MINUTES": "30",
            "AUTH_RATE_LIMIT_MAX": "3",
            "FALLBACK_ADMIN_PASSWORD": "letmein",
        })

        assert config.is_production is True
        assert config.jwt_secret == "access"
        assert config.jwt_refresh_secret == "refresh"
        assert config.access_token_expiry_minutes == 30
        assert config.auth_rate_limit == 3
        assert config.fallback_admin_password == "letmein"

    def test_empty_values_keep_defaults(self):
        config = AuthConfig.from_env({"JWT_SECRET": "", "RATE_LIMIT_MAX": ""})

        assert config.jwt_secret is None
        assert config.general_rate_limit == 100

    def test_secrets_hidden_from_repr(self):
        config = AuthConfig(jwt_secret="s3cret", fallback_admin_password="pw")

        assert "s3cret" not in repr(config)
        assert "fallback_admin_password" not in repr(config)
