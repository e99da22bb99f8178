"""API modules for HTTP interface."""

from api.base import (
    APIMeta,
    APIResponse,
    success_response,
    error_response,
    ErrorCodes,
)
