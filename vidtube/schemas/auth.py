"""Request/response schemas for login, logout, refresh and password change."""

from pydantic import Field

from vidtube.core.security import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN
from vidtube.schemas.common import CamelModel
from vidtube.schemas.user import AccountOut


class LoginRequest(CamelModel):
    """Credentials for login; either username or email identifies the account."""

    username: str | None = Field(default=None, max_length=255, description="Username")
    email: str | None = Field(default=None, max_length=320, description="Email")
    password: str | None = Field(default=None, max_length=PASSWORD_MAX_LEN, description="Password")


class RefreshRequest(CamelModel):
    """Refresh token sent in the body when the cookie is not available."""

    refresh_token: str | None = Field(default=None, description="Refresh token")


class ChangePasswordRequest(CamelModel):
    old_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)


class TokenPairOut(CamelModel):
    """New access/refresh pair returned by login and rotation."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")


class LoginResult(TokenPairOut):
    """Login payload: the sanitized account plus both tokens."""

    user: AccountOut
