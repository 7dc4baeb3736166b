"""Pydantic request/response schemas."""

from vidtube.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResult,
    RefreshRequest,
    TokenPairOut,
)
from vidtube.schemas.common import ApiResponse, CamelModel, ErrorResponse
from vidtube.schemas.health import HealthStatus
from vidtube.schemas.user import AccountOut, ChannelProfile, UpdateAccountRequest

__all__ = [
    "AccountOut",
    "ApiResponse",
    "CamelModel",
    "ChangePasswordRequest",
    "ChannelProfile",
    "ErrorResponse",
    "HealthStatus",
    "LoginRequest",
    "LoginResult",
    "RefreshRequest",
    "TokenPairOut",
    "UpdateAccountRequest",
]
