"""Pydantic models for auth domain."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AdminUser(BaseModel):
    """An administrator of the site, as exposed to clients."""

    id: str
    email: str
    name: str

    model_config = {"from_attributes": True}


class AdminCredential(AdminUser):
    """Stored admin record including the bcrypt password hash. Never serialized to clients."""

    password_hash: str = Field(..., repr=False)

    def public(self) -> AdminUser:
        return AdminUser(id=self.id, email=self.email, name=self.name)


class TokenPayload(BaseModel):
    """Claims carried by access and refresh tokens."""

    user_id: str
    email: str


class TokenPair(BaseModel):
    """Access and refresh token minted at login."""

    access_token: str
    refresh_token: str


class LoginResult(BaseModel):
    """Outcome of a successful login."""

    user: AdminUser
    tokens: TokenPair


class LoginRequest(BaseModel):
    """Request payload for login. Presence and format are checked by the service."""

    email: str | None = None
    password: str | None = None


class RefreshRequest(BaseModel):
    """Optional body for refresh when the cookie is unavailable."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    refresh_token: str | None = None
