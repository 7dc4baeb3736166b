"""Login, logout, token refresh, password change, and the get_current_user dependency."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from vidtube.core.config import get_settings
from vidtube.core.database import get_db
from vidtube.core.security import TokenIssuer
from vidtube.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResult,
    RefreshRequest,
    TokenPairOut,
)
from vidtube.schemas.common import ApiResponse
from vidtube.services.accounts import AccountStore
from vidtube.services.auth import AuthContext, AuthService, RequestCredentials

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"
COOKIE_PATH = "/"

router = APIRouter()
security = HTTPBearer(auto_error=False)


def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(get_settings().token_config())


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> AuthService:
    return AuthService(AccountStore(db), issuer, get_settings().BCRYPT_ROUNDS)


def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthContext:
    """
    Dependency: require a valid access token from the accessToken cookie or a
    Bearer header (cookie first). Raises 401 if missing, invalid, expired, or
    if the account no longer exists.
    """
    request_credentials = RequestCredentials(
        cookie_token=request.cookies.get(ACCESS_COOKIE),
        bearer_token=credentials.credentials if credentials is not None else None,
    )
    context = service.authenticate(request_credentials).unwrap()
    request.state.user = context.user
    return context


def set_token_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    """Attach both tokens as httpOnly cookies living as long as the tokens."""
    settings = get_settings()
    token_config = settings.token_config()
    for name, value, ttl in (
        (ACCESS_COOKIE, access_token, token_config.access_ttl),
        (REFRESH_COOKIE, refresh_token, token_config.refresh_ttl),
    ):
        response.set_cookie(
            name,
            value,
            max_age=int(ttl.total_seconds()),
            path=COOKIE_PATH,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.COOKIE_SAMESITE,
        )


def clear_token_cookies(response: Response) -> None:
    settings = get_settings()
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path=COOKIE_PATH,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.COOKIE_SAMESITE,
        )


@router.post("/login", response_model=ApiResponse[LoginResult])
def login(
    body: LoginRequest,
    response: Response,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> ApiResponse[LoginResult]:
    """
    Authenticate with username or email plus password.

    Returns the account and a fresh token pair, also set as httpOnly cookies.
    Any refresh token issued earlier for this account stops working.
    """
    result = service.login(body.username, body.email, body.password).unwrap()
    set_token_cookies(response, result.access_token, result.refresh_token)
    return ApiResponse[LoginResult](
        status_code=200, data=result, message="User logged in successfully"
    )


@router.post("/logout", response_model=ApiResponse[None])
def logout(
    response: Response,
    context: Annotated[AuthContext, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> ApiResponse[None]:
    service.logout(context.account_id).unwrap()
    clear_token_cookies(response)
    return ApiResponse[None](status_code=200, data=None, message="User logged out successfully")


@router.post("/refresh-token", response_model=ApiResponse[TokenPairOut])
def refresh_token(
    request: Request,
    response: Response,
    service: Annotated[AuthService, Depends(get_auth_service)],
    body: RefreshRequest | None = None,
) -> ApiResponse[TokenPairOut]:
    """
    Exchange a refresh token (cookie, or refreshToken in the body) for a new pair.

    The presented token must be the one most recently issued; a superseded
    token is rejected with 401 "Refresh Token is Expired or Used".
    """
    presented = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    tokens = service.refresh(presented).unwrap()
    set_token_cookies(response, tokens.access_token, tokens.refresh_token)
    return ApiResponse[TokenPairOut](
        status_code=200, data=tokens, message="Access token refreshed successfully"
    )


@router.patch("/change-password", response_model=ApiResponse[None])
def change_password(
    body: ChangePasswordRequest,
    context: Annotated[AuthContext, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> ApiResponse[None]:
    service.change_password(context.account_id, body.old_password, body.new_password).unwrap()
    return ApiResponse[None](status_code=200, data=None, message="Password changed successfully")
