"""Global exception handlers for FastAPI.

Every error leaves the API in the standard envelope. Status codes come from
the exception type, never from inspecting message text.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import (
    AuthError,
    ConfigurationError,
    InvalidCredentialsError,
    InvalidTokenError,
    RateLimitedError,
)
from core.exceptions import (
    DomainError,
    DuplicateInvoiceNumberError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from core.invoice_pdf import InvoiceRenderError

logger = logging.getLogger(__name__)

_DOMAIN_CODES = {
    ValidationError: ErrorCodes.VALIDATION_ERROR,
    NotFoundError: ErrorCodes.NOT_FOUND,
    DuplicateInvoiceNumberError: ErrorCodes.ALREADY_EXISTS,
    StorageUnavailableError: ErrorCodes.SERVICE_UNAVAILABLE,
}

_AUTH_CODES = {
    InvalidCredentialsError: ErrorCodes.INVALID_CREDENTIALS,
    InvalidTokenError: ErrorCodes.INVALID_TOKEN,
    RateLimitedError: ErrorCodes.RATE_LIMITED,
    ConfigurationError: ErrorCodes.CONFIGURATION_ERROR,
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _json_error(request: Request, status_code: int, code: str, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=error_response(code, message, _request_id(request)).model_dump(mode="json"),
    )


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if isinstance(exc, StorageUnavailableError):
            logger.warning("Storage unavailable for %s %s: %s", request.method, request.url.path, exc)
        code = _DOMAIN_CODES.get(type(exc), ErrorCodes.INTERNAL_ERROR)
        return _json_error(request, exc.status_code, code, str(exc))

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        headers = None
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(exc.retry_after_seconds)}
        if isinstance(exc, ConfigurationError):
            logger.critical("Auth configuration error: %s", exc)
        code = _AUTH_CODES.get(type(exc), ErrorCodes.NOT_AUTHENTICATED)
        return _json_error(request, exc.status_code, code, str(exc), headers)

    @app.exception_handler(InvoiceRenderError)
    async def render_error_handler(request: Request, exc: InvoiceRenderError):
        return _json_error(request, 500, ErrorCodes.RENDER_FAILED, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json_error(
            request, 400, ErrorCodes.INVALID_REQUEST, _first_validation_message(exc)
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = ErrorCodes.NOT_FOUND if exc.status_code == 404 else ErrorCodes.INVALID_REQUEST
        return _json_error(request, exc.status_code, code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json_error(request, 500, ErrorCodes.INTERNAL_ERROR, "Internal server error")
