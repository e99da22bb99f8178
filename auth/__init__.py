"""Authentication and authorization modules."""

from auth.exceptions import (
    AuthError,
    InvalidCredentialsError,
    InvalidTokenError,
    RateLimitedError,
    UserNotFoundError,
    ConfigurationError,
)
from auth.types import (
    AdminUser,
    AdminCredential,
    TokenPayload,
    TokenPair,
    LoginResult,
)
from auth.config import AuthConfig
from auth.credentials import AdminCredentialStore, build_fallback_storage, hash_password, verify_password
from auth.tokens import TokenIssuer
from auth.rate_limiter import (
    RateLimiter,
    RateLimitWindow,
    InMemoryWindowStore,
    ValkeyWindowStore,
)
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.service import AuthService
from auth.security_middleware import AuthMiddleware
from auth.api import create_auth_router
