"""API test fixtures: authenticated TestClient over an in-memory invoice store."""

from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from api.errors import register_error_handlers
from api.invoices import create_invoice_router
from api.middleware import RequestIDMiddleware
from auth.config import AuthConfig
from auth.security_middleware import AuthMiddleware
from auth.tokens import TokenIssuer
from auth.types import TokenPayload
from core.audit import AuditLogger
from core.services.invoice_service import InvoiceService
from tests.fakes import InMemoryInvoiceRepository


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def invoice_service(invoice_repository, audit):
    return InvoiceService(invoice_repository, audit)


@pytest.fixture
def token_issuer():
    return TokenIssuer(AuthConfig(jwt_secret="access-secret", jwt_refresh_secret="refresh-secret"))


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


def build_app(invoice_service: InvoiceService, token_issuer: TokenIssuer) -> FastAPI:
    """FastAPI app with auth middleware, error handlers and invoice routes."""
    app = FastAPI()
    app.add_middleware(AuthMiddleware, token_issuer=token_issuer)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(create_invoice_router(invoice_service), prefix="/api/admin")
    return app


@pytest.fixture
def app(invoice_service, token_issuer):
    return build_app(invoice_service, token_issuer)


@pytest.fixture
def client(app, token_issuer, test_admin):
    """Authenticated test client."""
    token = token_issuer.issue_access_token(TokenPayload(user_id=test_admin.user_id, email=test_admin.email))
    c = TestClient(app, raise_server_exceptions=False)
    c.headers["Authorization"] = f"Bearer {token}"
    return c


@pytest.fixture
def unauthed_client(app):
    """Unauthenticated test client (no bearer token)."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def offline_client(offline_storage, audit, token_issuer, test_admin):
    """Authenticated client whose database never connected."""
    service = InvoiceService(InMemoryInvoiceRepository(offline_storage), audit)
    token = token_issuer.issue_access_token(TokenPayload(user_id=test_admin.user_id, email=test_admin.email))
    c = TestClient(build_app(service, token_issuer), raise_server_exceptions=False)
    c.headers["Authorization"] = f"Bearer {token}"
    return c
