"""HTTP routes for authentication."""

from fastapi import APIRouter, Depends, Request, Response

from api.base import success_response
from auth.config import AuthConfig
from auth.exceptions import InvalidTokenError
from auth.rate_limiter import RateLimiter, client_ip
from auth.service import AuthService
from auth.types import LoginRequest, RefreshRequest


def create_auth_router(
    auth_service: AuthService,
    rate_limiter: RateLimiter,
    config: AuthConfig,
) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])
    auth_limit = Depends(rate_limiter.dependency(rate_limiter.auth))
    cookie_max_age = config.refresh_token_expiry_days * 24 * 60 * 60

    @router.post("/login", dependencies=[auth_limit])
    async def login(request: Request, response: Response, body: LoginRequest):
        """Log in with email and password.

        Returns the access token and admin profile. The refresh token is set
        as an HTTP-only cookie and never appears in the body.
        """
        result = auth_service.login(
            email=body.email,
            password=body.password,
            ip_address=client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )

        response.set_cookie(
            key=config.refresh_cookie_name,
            value=result.tokens.refresh_token,
            httponly=True,
            secure=config.is_production,
            samesite="strict",
            max_age=cookie_max_age,
        )

        return success_response({
            "accessToken": result.tokens.access_token,
            "user": result.user.model_dump(),
        })

    @router.post("/refresh", dependencies=[auth_limit])
    async def refresh(request: Request, body: RefreshRequest | None = None):
        """Exchange the refresh token (cookie, or ``refreshToken`` in the body) for a new access token."""
        token = request.cookies.get(config.refresh_cookie_name)
        if not token and body is not None:
            token = body.refresh_token
        if not token:
            raise InvalidTokenError("No refresh token provided")

        access_token = auth_service.refresh(token, ip_address=client_ip(request))
        return success_response({"accessToken": access_token})

    @router.post("/logout")
    async def logout(request: Request, response: Response):
        """Logout - clear the refresh cookie."""
        auth_service.logout(
            request.cookies.get(config.refresh_cookie_name),
            ip_address=client_ip(request),
        )

        response.delete_cookie(
            key=config.refresh_cookie_name,
            httponly=True,
            secure=config.is_production,
            samesite="strict",
        )

        return success_response({"message": "Logged out successfully"})

    @router.get("/me")
    async def get_current_admin(request: Request):
        """Get the authenticated admin.

        Requires authentication (middleware sets request.state.user).
        """
        admin = auth_service.current_admin(request.state.user["user_id"])
        return success_response({"user": admin.model_dump()})

    return router
