"""Account and channel profile schemas. None of them expose password or refresh token."""

from datetime import datetime

from pydantic import Field

from vidtube.schemas.common import CamelModel


class AccountOut(CamelModel):
    """Sanitized account view returned to clients."""

    id: int
    username: str
    email: str
    fullname: str
    avatar: str
    cover_image: str = ""
    watch_history: list[int | str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UpdateAccountRequest(CamelModel):
    """Self-service profile update; both fields are required by the service."""

    fullname: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=320)


class ChannelProfile(CamelModel):
    """Public channel view with subscription aggregates."""

    id: int
    username: str
    fullname: str
    email: str
    avatar: str
    cover_image: str = ""
    subscribers_count: int = Field(..., ge=0)
    channels_subscribed_to_count: int = Field(..., ge=0)
    is_subscribed: bool = False
