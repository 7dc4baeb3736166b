"""Stage multipart uploads on local disk and push them to the Cloudinary media host."""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import cloudinary.exceptions
import cloudinary.uploader
from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from vidtube.core.errors import ApiError, ErrorKind

if TYPE_CHECKING:
    from vidtube.core.config import Settings

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_BYTES = 1024 * 1024


@dataclass(frozen=True)
class StagedFile:
    """An uploaded file written to the local temp directory."""

    field: str
    path: Path
    filename: str
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class MediaAsset:
    url: str
    public_id: str | None = None


class MediaUploader(Protocol):
    """Pushes a staged file to the media host; returns None when the upload fails."""

    async def upload(self, staged: StagedFile) -> MediaAsset | None: ...


def _staged_name(field: str) -> str:
    # field-<epoch ms>-<random> keeps concurrent uploads of the same field apart
    return f"{field}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"


async def stage_upload(
    upload: UploadFile | None,
    field: str,
    settings: Settings,
) -> StagedFile | None:
    """
    Write an uploaded part to UPLOAD_TEMP_DIR and return its staged reference.

    Returns None when no file (or an empty filename) was sent. Raises ApiError
    (400) when the file exceeds MAX_UPLOAD_BYTES; the partial file is removed.
    """
    if upload is None or not upload.filename:
        return None
    temp_dir = Path(settings.UPLOAD_TEMP_DIR)
    temp_dir.mkdir(parents=True, exist_ok=True)
    path = temp_dir / _staged_name(field)
    written = 0
    try:
        with path.open("wb") as fh:
            while chunk := await upload.read(UPLOAD_CHUNK_BYTES):
                written += len(chunk)
                if written > settings.MAX_UPLOAD_BYTES:
                    raise ApiError(
                        int(ErrorKind.BAD_REQUEST),
                        f"File size must not exceed {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB.",
                    )
                fh.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    return StagedFile(
        field=field,
        path=path,
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
    )


def discard(*staged: StagedFile | None) -> None:
    """Delete staged files that still exist."""
    for item in staged:
        if item is not None:
            item.path.unlink(missing_ok=True)


@asynccontextmanager
async def staged_uploads(
    settings: Settings,
    **uploads: UploadFile | None,
) -> AsyncIterator[dict[str, StagedFile | None]]:
    """Stage every given upload and remove all of them on exit, whatever happens."""
    staged: dict[str, StagedFile | None] = {}
    try:
        for field, upload in uploads.items():
            staged[field] = await stage_upload(upload, field, settings)
        yield staged
    finally:
        discard(*staged.values())


class CloudinaryUploader:
    """Uploads through the Cloudinary SDK with the resource type auto-detected."""

    def __init__(self, settings: Settings) -> None:
        self.cloud_name = (settings.CLOUDINARY_CLOUD_NAME or "").strip()
        self.api_key = (settings.CLOUDINARY_API_KEY or "").strip()
        self.api_secret = (
            settings.CLOUDINARY_API_SECRET.get_secret_value()
            if settings.CLOUDINARY_API_SECRET is not None
            else ""
        )
        self.timeout = max(1.0, min(120.0, settings.CLOUDINARY_REQUEST_TIMEOUT_SEC))

    @property
    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret.strip())

    async def upload(self, staged: StagedFile) -> MediaAsset | None:
        if not self.is_configured:
            logger.error(
                "Cloudinary is not configured; set CLOUDINARY_CLOUD_NAME, "
                "CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET."
            )
            return None
        if not staged.path.is_file():
            logger.warning("Staged file missing: field=%s path=%s", staged.field, staged.path)
            return None
        # The SDK call blocks on network I/O.
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                str(staged.path),
                resource_type="auto",
                cloud_name=self.cloud_name,
                api_key=self.api_key,
                api_secret=self.api_secret,
                timeout=self.timeout,
            )
        except (cloudinary.exceptions.Error, OSError) as e:
            logger.warning("Cloudinary upload failed: field=%s error=%s", staged.field, e)
            return None
        media_url = result.get("secure_url") or result.get("url")
        if not media_url:
            logger.warning("Cloudinary response missing url: field=%s", staged.field)
            return None
        logger.info("Uploaded %s to Cloudinary: %s", staged.field, media_url)
        return MediaAsset(url=media_url, public_id=result.get("public_id"))
