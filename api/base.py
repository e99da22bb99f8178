"""
Response envelope shared by every admin API endpoint.

    {"success": true,  "data": ..., "meta": {...}}
    {"success": false, "error": "Invoice not found", "code": "NOT_FOUND", "meta": {...}}

The admin UI shows ``error`` to the user verbatim and branches on ``code``.
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel

from utils.timezone import now_utc


class APIMeta(BaseModel):
    timestamp: datetime
    request_id: str


class APIResponse(BaseModel):
    success: bool
    data: Any | None = None
    error: str | None = None
    code: str | None = None
    meta: APIMeta

    @classmethod
    def build(cls, request_id: str | None = None, **fields: Any) -> "APIResponse":
        """Stamp the envelope with the current UTC time and the request id (or a fresh one)."""
        return cls(meta=APIMeta(timestamp=now_utc(), request_id=request_id or str(uuid4())), **fields)


def success_response(data: Any, request_id: str | None = None) -> APIResponse:
    return APIResponse.build(request_id, success=True, data=data)


def error_response(code: str, message: str, request_id: str | None = None) -> APIResponse:
    return APIResponse.build(request_id, success=False, error=message, code=code)


class ErrorCodes:
    """Values of the ``code`` field on failed responses."""

    # 401 / 429 from the auth layer
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    RATE_LIMITED = "RATE_LIMITED"

    # Invoice requests
    INVALID_REQUEST = "INVALID_REQUEST"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    RENDER_FAILED = "RENDER_FAILED"

    # Server side
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
