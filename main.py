"""Application entry point.

Builds the FastAPI app and wires every service explicitly; nothing is
looked up through module globals. Run with:

    uvicorn main:create_app --factory
"""

import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import Mapping

import redis
from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from api.base import success_response
from api.errors import register_error_handlers
from api.invoices import create_invoice_router
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.credentials import AdminCredentialStore, build_fallback_storage
from auth.rate_limiter import InMemoryWindowStore, RateLimiter, ValkeyWindowStore
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.tokens import TokenIssuer
from clients.valkey_client import ValkeyClient
from clients.vault_client import VaultClient, get_database_url, get_jwt_secrets
from core.audit import AuditLogger
from core.repositories import InvoiceRepository
from core.services.invoice_service import InvoiceService
from core.storage import PersistentStorage
from utils.logging import setup_logging

logger = logging.getLogger(__name__)

API_PREFIX = "/api/admin"


class Settings(BaseModel):
    """Process-level settings."""

    database_url: str | None = Field(default=None, repr=False)
    valkey_url: str | None = None
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    log_level: str = "INFO"
    auth: AuthConfig = Field(default_factory=AuthConfig)


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Read settings from the environment (after loading ``.env``).

    When VAULT_ADDR is set, the database URL and signing secrets come from
    Vault instead of the environment.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    auth_config = AuthConfig.from_env(env)
    database_url = env.get("DATABASE_URL")

    if env.get("VAULT_ADDR"):
        vault = VaultClient.from_env(env)
        database_url = get_database_url(vault)
        auth_config = auth_config.model_copy(update=get_jwt_secrets(vault))

    origins = env.get("CORS_ORIGINS")
    return Settings(
        database_url=database_url,
        valkey_url=env.get("VALKEY_URL") or None,
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()] if origins else ["http://localhost:5173"],
        log_level=env.get("LOG_LEVEL", "INFO"),
        auth=auth_config,
    )


@dataclass
class AppServices:
    """Every long-lived service the app uses, constructed once per process."""

    storage: PersistentStorage
    invoice_service: InvoiceService
    auth_service: AuthService
    rate_limiter: RateLimiter
    security_logger: SecurityLogger
    valkey: ValkeyClient | None = None


def build_services(settings: Settings, storage: PersistentStorage | None = None) -> AppServices:
    """Construct services. The database isn't connected until storage.init()."""
    storage = storage or PersistentStorage(settings.database_url)
    security_logger = SecurityLogger(storage)

    valkey = ValkeyClient(settings.valkey_url) if settings.valkey_url else None
    window_store = ValkeyWindowStore(valkey) if valkey else InMemoryWindowStore()

    credentials = AdminCredentialStore(storage, build_fallback_storage(settings.auth))
    auth_service = AuthService(credentials, TokenIssuer(settings.auth), security_logger)

    return AppServices(
        storage=storage,
        invoice_service=InvoiceService(InvoiceRepository(storage), AuditLogger(storage)),
        auth_service=auth_service,
        rate_limiter=RateLimiter(window_store, settings.auth, security_logger),
        security_logger=security_logger,
        valkey=valkey,
    )


def create_app(settings: Settings | None = None, services: AppServices | None = None) -> FastAPI:
    """Application factory."""
    settings = settings or load_settings()
    setup_logging(settings.log_level)
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.storage.init()
        sweeper = asyncio.create_task(services.rate_limiter.run_sweeper())
        logger.info("Encore admin API started")

        yield

        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        services.storage.shutdown()
        if services.valkey:
            services.valkey.close()
        logger.info("Encore admin API stopped")

    app = FastAPI(title="Encore Admin API", version="1.0.0", lifespan=lifespan)
    app.state.services = services

    # Last added runs first: CORS, then request id, then auth.
    app.add_middleware(
        AuthMiddleware,
        token_issuer=services.auth_service.tokens,
        security_logger=services.security_logger,
    )
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    limiter = services.rate_limiter
    general_limit = Depends(limiter.dependency(limiter.general))

    app.include_router(
        create_invoice_router(services.invoice_service),
        prefix=API_PREFIX,
        dependencies=[general_limit],
    )
    app.include_router(
        create_auth_router(services.auth_service, limiter, settings.auth),
        prefix=f"{API_PREFIX}/auth",
        dependencies=[general_limit],
    )

    @app.get("/health")
    async def health():
        connected = services.storage.ping()
        data = {
            "status": "ok" if connected else "degraded",
            "database": "connected" if connected else "unavailable",
        }
        if services.valkey:
            try:
                services.valkey.ping()
                data["valkey"] = "connected"
            except redis.RedisError:
                data["valkey"] = "unavailable"
                data["status"] = "degraded"
        return success_response(data).model_dump(mode="json")

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
