"""Bearer-token gate for the admin API.

Requests under /api/admin need a valid access token, except the handful of
public endpoints below. Verification is signature and expiry only, so a
request never touches the database here. Everything outside /api/admin
passes through untouched.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.exceptions import ConfigurationError, InvalidTokenError
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.tokens import TokenIssuer
from api.base import error_response, ErrorCodes
from utils.user_context import AdminIdentity, admin_context

logger = logging.getLogger(__name__)

PROTECTED_PREFIX = "/api/admin"

PUBLIC_PATHS = frozenset({
    f"{PROTECTED_PREFIX}/auth/login",
    f"{PROTECTED_PREFIX}/auth/refresh",
    f"{PROTECTED_PREFIX}/auth/logout",
    f"{PROTECTED_PREFIX}/invoices/next-number",
})


def requires_auth(request: Request) -> bool:
    if request.method == "OPTIONS":
        return False
    path = request.url.path.rstrip("/")
    return path.startswith(PROTECTED_PREFIX) and path not in PUBLIC_PATHS


def _reject(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    body = error_response(code, message, getattr(request.state, "request_id", None))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Verifies ``Authorization: Bearer <token>`` and runs the request as that
    admin: ``request.state.user`` is set and the admin context holds the
    identity until the response is produced.
    """

    def __init__(self, app, token_issuer: TokenIssuer, security_logger: SecurityLogger | None = None):
        super().__init__(app)
        self._token_issuer = token_issuer
        self._security_logger = security_logger

    async def dispatch(self, request: Request, call_next):
        if not requires_auth(request):
            return await call_next(request)

        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            return _reject(request, 401, ErrorCodes.NOT_AUTHENTICATED, "No token provided")

        try:
            payload = self._token_issuer.verify_access_token(token)
        except InvalidTokenError as e:
            if self._security_logger:
                self._security_logger.log(
                    SecurityEvent.ACCESS_DENIED,
                    ip_address=request.client.host if request.client else None,
                    user_agent=request.headers.get("User-Agent"),
                    details={"path": request.url.path, "reason": str(e)},
                )
            return _reject(request, 401, ErrorCodes.INVALID_TOKEN, str(e))
        except ConfigurationError as e:
            logger.error("Cannot verify access tokens: %s", e)
            return _reject(request, 500, ErrorCodes.CONFIGURATION_ERROR, str(e))

        admin = AdminIdentity(user_id=payload.user_id, email=payload.email)
        request.state.user = {"user_id": admin.user_id, "email": admin.email}
        with admin_context(admin):
            return await call_next(request)
