"""Authentication service - orchestrates the login/refresh/logout flow."""

import logging

from email_validator import EmailNotValidError, validate_email

from auth.credentials import AdminCredentialStore, FALLBACK_ADMIN_ID, normalize_email
from auth.exceptions import InvalidCredentialsError, InvalidTokenError, UserNotFoundError
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.tokens import TokenIssuer
from auth.types import AdminUser, LoginResult, TokenPayload
from core.exceptions import ValidationError

logger = logging.getLogger(__name__)


class AuthService:
    """Orchestrates admin authentication.

    Handles:
    - Login (credential check, token pair)
    - Refresh (new access token from a refresh token; refresh tokens are not rotated)
    - Logout (audit only; tokens are stateless)
    """

    def __init__(
        self,
        credentials: AdminCredentialStore,
        tokens: TokenIssuer,
        security_logger: SecurityLogger,
    ):
        self._credentials = credentials
        self._tokens = tokens
        self._security_logger = security_logger

    @property
    def tokens(self) -> TokenIssuer:
        return self._tokens

    def login(
        self,
        email: str | None,
        password: str | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """Check credentials and mint an access/refresh token pair.

        Flow:
        1. Require both fields and a well-formed email
        2. Verify against the credential store (or fallback admin)
        3. Mint tokens
        4. Log security event

        Raises:
            ValidationError: Missing email/password or malformed email.
            InvalidCredentialsError: Unknown email or wrong password.
            ConfigurationError: Production signing secrets not configured.
        """
        if not email or not email.strip() or not password:
            raise ValidationError("Email and password are required")

        email = normalize_email(email)
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationError("Invalid email format") from None

        try:
            user = self._credentials.verify(email, password)
        except InvalidCredentialsError:
            self._security_logger.log(
                SecurityEvent.LOGIN_FAILED,
                email=email,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            raise

        tokens = self._tokens.issue_pair(TokenPayload(user_id=user.id, email=user.email))

        self._security_logger.log(
            SecurityEvent.FALLBACK_LOGIN if user.id == FALLBACK_ADMIN_ID else SecurityEvent.LOGIN_SUCCEEDED,
            email=user.email,
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return LoginResult(user=user, tokens=tokens)

    def refresh(self, refresh_token: str, ip_address: str | None = None) -> str:
        """Exchange a refresh token for a new access token.

        The admin named in the token is looked up again so a deleted admin
        can't keep refreshing.

        Raises:
            InvalidTokenError: Refresh token invalid or expired.
            UserNotFoundError: Admin no longer exists.
        """
        try:
            payload = self._tokens.verify_refresh_token(refresh_token)
        except InvalidTokenError:
            self._security_logger.log(
                SecurityEvent.REFRESH_FAILED,
                ip_address=ip_address,
                details={"reason": "invalid_token"},
            )
            raise

        credential = self._credentials.find_by_id(payload.user_id)
        if credential is None:
            self._security_logger.log(
                SecurityEvent.REFRESH_FAILED,
                email=payload.email,
                user_id=payload.user_id,
                ip_address=ip_address,
                details={"reason": "user_not_found"},
            )
            raise UserNotFoundError("User not found")

        access_token = self._tokens.issue_access_token(
            TokenPayload(user_id=credential.id, email=credential.email)
        )

        self._security_logger.log(
            SecurityEvent.TOKEN_REFRESHED,
            email=credential.email,
            user_id=credential.id,
            ip_address=ip_address,
        )
        return access_token

    def logout(self, refresh_token: str | None, ip_address: str | None = None) -> None:
        """Record a logout.

        Safe to call with a missing or invalid token.
        """
        email = None
        user_id = None
        if refresh_token:
            try:
                payload = self._tokens.verify_refresh_token(refresh_token)
                email, user_id = payload.email, payload.user_id
            except InvalidTokenError:
                pass

        self._security_logger.log(
            SecurityEvent.LOGGED_OUT,
            email=email,
            user_id=user_id,
            ip_address=ip_address,
        )

    def current_admin(self, user_id: str) -> AdminUser:
        """Admin profile for an authenticated session.

        Raises:
            UserNotFoundError: Admin no longer exists.
        """
        credential = self._credentials.find_by_id(user_id)
        if credential is None:
            raise UserNotFoundError("User not found")
        return credential.public()
