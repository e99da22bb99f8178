"""Auth fixtures: real token issuer and credential store over mock storage."""

from unittest.mock import Mock
from uuid import UUID

import pytest

from auth.config import AuthConfig
from auth.credentials import AdminCredentialStore, build_fallback_storage, hash_password
from auth.security_logger import SecurityLogger
from auth.service import AuthService
from auth.tokens import TokenIssuer

TEST_ADMIN_ID = "00000000-0000-0000-0000-000000000001"
TEST_ADMIN_EMAIL = "owner@example.com"
TEST_ADMIN_PASSWORD = "correct horse battery"
FALLBACK_PASSWORD = "fallback-pw"


@pytest.fixture(scope="session")
def admin_password_hash():
    return hash_password(TEST_ADMIN_PASSWORD)


@pytest.fixture
def auth_config():
    return AuthConfig(
        jwt_secret="access-secret",
        jwt_refresh_secret="refresh-secret",
        fallback_admin_password=FALLBACK_PASSWORD,
    )


@pytest.fixture
def admin_row(admin_password_hash):
    return {
        "id": UUID(TEST_ADMIN_ID),
        "email": TEST_ADMIN_EMAIL,
        "name": "Site Owner",
        "password_hash": admin_password_hash,
    }


@pytest.fixture
def admin_in_db(pg_client, admin_row):
    """Database knows exactly one admin, looked up by email or id."""
    def lookup(query, params=None):
        value = str(params[0]) if params else None
        if value in (TEST_ADMIN_EMAIL, TEST_ADMIN_ID):
            return admin_row
        return None

    pg_client.execute_single.side_effect = lookup
    return admin_row


@pytest.fixture
def security_logger():
    return Mock(spec=SecurityLogger)


@pytest.fixture
def token_issuer(auth_config):
    return TokenIssuer(auth_config)


def make_auth_service(storage, auth_config, token_issuer, security_logger) -> AuthService:
    credentials = AdminCredentialStore(storage, build_fallback_storage(auth_config))
    return AuthService(credentials, token_issuer, security_logger)


@pytest.fixture
def auth_service(storage, auth_config, token_issuer, security_logger):
    return make_auth_service(storage, auth_config, token_issuer, security_logger)


@pytest.fixture
def offline_auth_service(offline_storage, auth_config, token_issuer, security_logger):
    return make_auth_service(offline_storage, auth_config, token_issuer, security_logger)
