"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""

    status_code = 401


class InvalidCredentialsError(AuthError):
    """
    Email/password pair did not match.

    Raised identically for an unknown email and a wrong password so the
    response never reveals which one was wrong.
    """

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class InvalidTokenError(AuthError):
    """
    Token is invalid, expired, or malformed.

    Used for both access and refresh tokens. Every verification failure
    collapses to the same message.
    """

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class RateLimitedError(AuthError):
    """Too many attempts. Client should wait before retrying."""

    status_code = 429

    def __init__(self, retry_after_seconds: int, message: str | None = None):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message or f"Rate limited. Retry after {retry_after_seconds} seconds.")


class UserNotFoundError(AuthError):
    """
    Token names an admin that no longer exists.

    Note: In user-facing responses, don't reveal whether the admin exists.
    This exception is for internal logic only.
    """


class ConfigurationError(AuthError):
    """Signing secrets are missing or still set to a placeholder in production."""

    status_code = 500
