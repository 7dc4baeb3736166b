"""Account persistence (credential store) and self-service account operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vidtube.core.errors import ErrorKind, Outcome
from vidtube.core.security import (
    BCRYPT_ROUNDS,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    hash_password,
)
from vidtube.models.user import User
from vidtube.schemas.user import AccountOut
from vidtube.services.media import MediaUploader, StagedFile

logger = logging.getLogger(__name__)

ImageField = Literal["avatar", "cover_image"]

_IMAGE_LABELS: dict[str, str] = {"avatar": "Avatar", "cover_image": "Cover image"}


def normalize_identifier(value: str | None) -> str:
    """Usernames and emails are stored trimmed and lowercased."""
    return (value or "").strip().lower()


def sanitize(account: User) -> AccountOut:
    """Account view without password hash or refresh token."""
    return AccountOut.model_validate(account)


class AccountStore:
    """Credential store over a SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_username_or_email(
        self, username: str | None, email: str | None
    ) -> User | None:
        """Return the first account matching either identifier (logical OR)."""
        conditions = []
        if normalize_identifier(username):
            conditions.append(User.username == normalize_identifier(username))
        if normalize_identifier(email):
            conditions.append(User.email == normalize_identifier(email))
        if not conditions:
            return None
        return self.db.query(User).filter(or_(*conditions)).order_by(User.id).first()

    def find_by_id(self, account_id: int) -> User | None:
        return self.db.get(User, account_id)

    def create(self, fields: dict[str, Any]) -> User:
        """Insert a new account. Raises IntegrityError on a duplicate username/email."""
        account = User(**fields)
        self.db.add(account)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(account)
        return account

    def update(self, account_id: int, fields: dict[str, Any]) -> User | None:
        """Partial update; returns the updated account or None if it does not exist."""
        account = self.find_by_id(account_id)
        if account is None:
            return None
        for name, value in fields.items():
            setattr(account, name, value)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        self.db.refresh(account)
        return account

    def set_refresh_token(
        self,
        account_id: int,
        token: str | None,
        ended_at: datetime | None = None,
    ) -> bool:
        """Overwrite the stored refresh token and logout stamp unconditionally (login and logout)."""
        updated = (
            self.db.query(User)
            .filter(User.id == account_id)
            .update(
                {User.refresh_token: token, User.session_ended_at: ended_at},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated == 1

    def swap_refresh_token(self, account_id: int, expected: str, new: str) -> bool:
        """
        Replace the stored refresh token only if it still equals ``expected``.

        Atomic in the database: of two concurrent rotations presenting the same
        token, exactly one sees True.
        """
        updated = (
            self.db.query(User)
            .filter(User.id == account_id, User.refresh_token == expected)
            .update({User.refresh_token: new}, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1


@dataclass(frozen=True)
class RegistrationForm:
    fullname: str | None
    email: str | None
    username: str | None
    password: str | None


class AccountService:
    """Registration and authenticated profile updates."""

    def __init__(
        self,
        store: AccountStore,
        uploader: MediaUploader,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        self.store = store
        self.uploader = uploader
        self.bcrypt_rounds = bcrypt_rounds

    async def register(
        self,
        form: RegistrationForm,
        avatar: StagedFile | None,
        cover_image: StagedFile | None = None,
    ) -> Outcome[AccountOut]:
        """
        Create an account with an uploaded avatar and optional cover image.

        Staged files are not removed here; the caller owns them.
        """
        fields = [form.fullname, form.email, form.username, form.password]
        if any(f is None or not f.strip() for f in fields):
            return Outcome.fail(ErrorKind.BAD_REQUEST, "All fields are required")
        if not (PASSWORD_MIN_LEN <= len(form.password) <= PASSWORD_MAX_LEN):
            return Outcome.fail(
                ErrorKind.BAD_REQUEST,
                f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters",
            )
        username = normalize_identifier(form.username)
        email = normalize_identifier(form.email)
        if "@" not in email:
            return Outcome.fail(ErrorKind.BAD_REQUEST, "Invalid email address")

        if self.store.find_by_username_or_email(username, email) is not None:
            return Outcome.fail(
                ErrorKind.CONFLICT, "User with email or username already exists"
            )
        if avatar is None:
            return Outcome.fail(ErrorKind.BAD_REQUEST, "Avatar image is required")

        avatar_asset = await self.uploader.upload(avatar)
        if avatar_asset is None:
            return Outcome.fail(ErrorKind.BAD_REQUEST, "Avatar image is required")
        cover_asset = await self.uploader.upload(cover_image) if cover_image else None

        try:
            account = self.store.create(
                {
                    "fullname": form.fullname.strip(),
                    "avatar": avatar_asset.url,
                    "cover_image": cover_asset.url if cover_asset else "",
                    "email": email,
                    "username": username,
                    "password_hash": hash_password(form.password, self.bcrypt_rounds),
                }
            )
        except IntegrityError:
            return Outcome.fail(
                ErrorKind.CONFLICT, "User with email or username already exists"
            )
        logger.info("Registered account id=%s", account.id)
        return Outcome.success(sanitize(account))

    def update_details(
        self, account_id: int, fullname: str | None, email: str | None
    ) -> Outcome[AccountOut]:
        if not fullname or not fullname.strip() or not email or not email.strip():
            return Outcome.fail(ErrorKind.BAD_REQUEST, "All fields are required")
        email = normalize_identifier(email)
        if "@" not in email:
            return Outcome.fail(ErrorKind.BAD_REQUEST, "Invalid email address")
        holder = self.store.find_by_username_or_email(None, email)
        if holder is not None and holder.id != account_id:
            return Outcome.fail(ErrorKind.CONFLICT, "Email is already in use")
        try:
            account = self.store.update(
                account_id, {"fullname": fullname.strip(), "email": email}
            )
        except IntegrityError:
            return Outcome.fail(ErrorKind.CONFLICT, "Email is already in use")
        if account is None:
            return Outcome.fail(ErrorKind.NOT_FOUND, "User does not exist")
        return Outcome.success(sanitize(account))

    async def update_image(
        self, account_id: int, field: ImageField, staged: StagedFile | None
    ) -> Outcome[AccountOut]:
        """Upload a new avatar or cover image and store its URL."""
        label = _IMAGE_LABELS[field]
        if staged is None:
            return Outcome.fail(ErrorKind.BAD_REQUEST, f"{label} file is missing")
        asset = await self.uploader.upload(staged)
        if asset is None:
            return Outcome.fail(
                ErrorKind.BAD_REQUEST, f"Error while uploading {label.lower()}"
            )
        account = self.store.update(account_id, {field: asset.url})
        if account is None:
            return Outcome.fail(ErrorKind.NOT_FOUND, "User does not exist")
        return Outcome.success(sanitize(account))
