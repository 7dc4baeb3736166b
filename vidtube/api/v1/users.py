"""Registration, current-user profile updates, and channel profiles."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from vidtube.api.v1.auth import get_current_user
from vidtube.core.config import get_settings
from vidtube.core.database import get_db
from vidtube.schemas.common import ApiResponse
from vidtube.schemas.user import AccountOut, ChannelProfile, UpdateAccountRequest
from vidtube.services.accounts import AccountService, AccountStore, RegistrationForm
from vidtube.services.auth import AuthContext
from vidtube.services.channels import get_channel_profile
from vidtube.services.media import CloudinaryUploader, MediaUploader, staged_uploads

router = APIRouter()


def get_media_uploader() -> MediaUploader:
    return CloudinaryUploader(get_settings())


def get_account_service(
    db: Annotated[Session, Depends(get_db)],
    uploader: Annotated[MediaUploader, Depends(get_media_uploader)],
) -> AccountService:
    return AccountService(AccountStore(db), uploader, get_settings().BCRYPT_ROUNDS)


@router.post("/register", response_model=ApiResponse[AccountOut], status_code=201)
async def register(
    service: Annotated[AccountService, Depends(get_account_service)],
    fullname: Annotated[str | None, Form()] = None,
    email: Annotated[str | None, Form()] = None,
    username: Annotated[str | None, Form()] = None,
    password: Annotated[str | None, Form()] = None,
    avatar: Annotated[UploadFile | None, File()] = None,
    cover_image: Annotated[UploadFile | None, File(alias="coverImage")] = None,
) -> ApiResponse[AccountOut]:
    """
    Create an account from a multipart form.

    Fields: fullname, email, username, password, avatar (file, required) and
    coverImage (file, optional). Images are pushed to the media host; the
    locally staged copies are always removed.
    """
    async with staged_uploads(get_settings(), avatar=avatar, cover_image=cover_image) as staged:
        outcome = await service.register(
            RegistrationForm(
                fullname=fullname, email=email, username=username, password=password
            ),
            staged["avatar"],
            staged["cover_image"],
        )
    return ApiResponse[AccountOut](
        status_code=201, data=outcome.unwrap(), message="User registered successfully"
    )


@router.get("/get-user", response_model=ApiResponse[AccountOut])
def get_user(
    context: Annotated[AuthContext, Depends(get_current_user)],
) -> ApiResponse[AccountOut]:
    return ApiResponse[AccountOut](
        status_code=200, data=context.user, message="Current user fetched successfully"
    )


@router.patch("/update-details", response_model=ApiResponse[AccountOut])
def update_details(
    body: UpdateAccountRequest,
    context: Annotated[AuthContext, Depends(get_current_user)],
    service: Annotated[AccountService, Depends(get_account_service)],
) -> ApiResponse[AccountOut]:
    account = service.update_details(context.account_id, body.fullname, body.email).unwrap()
    return ApiResponse[AccountOut](
        status_code=200, data=account, message="Account details updated successfully"
    )


@router.patch("/update-details/avatar", response_model=ApiResponse[AccountOut])
async def update_avatar(
    context: Annotated[AuthContext, Depends(get_current_user)],
    service: Annotated[AccountService, Depends(get_account_service)],
    avatar: Annotated[UploadFile | None, File()] = None,
) -> ApiResponse[AccountOut]:
    async with staged_uploads(get_settings(), avatar=avatar) as staged:
        outcome = await service.update_image(context.account_id, "avatar", staged["avatar"])
    return ApiResponse[AccountOut](
        status_code=200, data=outcome.unwrap(), message="Avatar updated successfully"
    )


@router.patch("/update-details/coverImage", response_model=ApiResponse[AccountOut])
async def update_cover_image(
    context: Annotated[AuthContext, Depends(get_current_user)],
    service: Annotated[AccountService, Depends(get_account_service)],
    cover_image: Annotated[UploadFile | None, File(alias="coverImage")] = None,
) -> ApiResponse[AccountOut]:
    async with staged_uploads(get_settings(), cover_image=cover_image) as staged:
        outcome = await service.update_image(
            context.account_id, "cover_image", staged["cover_image"]
        )
    return ApiResponse[AccountOut](
        status_code=200, data=outcome.unwrap(), message="Cover image updated successfully"
    )


@router.get("/getChannelProfile/{username}", response_model=ApiResponse[ChannelProfile])
def channel_profile(
    username: str,
    context: Annotated[AuthContext, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse[ChannelProfile]:
    """Channel fields plus subscriber / subscribed-to counts and whether the caller subscribes."""
    profile = get_channel_profile(db, username, viewer_id=context.account_id).unwrap()
    return ApiResponse[ChannelProfile](
        status_code=200, data=profile, message="Channel profile fetched successfully"
    )
