"""Photo intake: type/size checks, upload, best-effort cleanup."""

from __future__ import annotations

import os
import re
import time
from dataclasses import dataclass
from typing import Optional

import structlog

from entraide_api.core.errors import UpstreamFailure, ValidationFailed
from entraide_api.core.storage import BlobStore, BlobStoreError

logger = structlog.get_logger()

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})
ALLOWED_EXTENSIONS = frozenset({".jpeg", ".jpg", ".png", ".webp"})

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class PhotoUpload:
    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class StoredPhoto:
    key: str
    url: str


def check_photo(photo: PhotoUpload, max_bytes: int) -> None:
    extension = os.path.splitext(photo.filename or "")[1].lower()
    if (photo.content_type or "").lower() not in ALLOWED_CONTENT_TYPES or extension not in ALLOWED_EXTENSIONS:
        raise ValidationFailed(
            ["Only JPEG, JPG, PNG and WEBP images are allowed"],
            message="Invalid file type",
            code="INVALID_FILE_TYPE",
        )
    if len(photo.data) > max_bytes:
        raise ValidationFailed(
            [f"Photo must be at most {max_bytes // (1024 * 1024)} MB"],
            message="File too large",
            code="FILE_TOO_LARGE",
        )


def object_key(prefix: str, filename: str, now_ms: Optional[int] = None) -> str:
    """``<prefix>/<millis>-<sanitized name>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    base = os.path.basename(filename or "photo")
    safe = _UNSAFE_CHARS.sub("_", base).strip("._") or "photo"
    return f"{prefix.rstrip('/')}/{now_ms}-{safe}"


async def store_photo(blobs: BlobStore, photo: PhotoUpload, prefix: str, max_bytes: int) -> StoredPhoto:
    check_photo(photo, max_bytes)
    key = object_key(prefix, photo.filename)
    try:
        url = await blobs.upload(photo.data, photo.content_type.lower(), key)
    except BlobStoreError as exc:
        logger.error("photo.upload_failed", key=key, error=str(exc))
        raise UpstreamFailure("photo_upload", "Photo upload failed", cause=str(exc)) from exc
    logger.info("photo.uploaded", key=key, size=len(photo.data))
    return StoredPhoto(key=key, url=url)


async def discard_photo(blobs: BlobStore, stored: Optional[StoredPhoto]) -> None:
    """Remove an upload whose row was never written. Never raises."""
    if stored is None:
        return
    try:
        await blobs.delete(stored.key)
    except Exception as exc:
        logger.warning("photo.cleanup_failed", key=stored.key, error=str(exc))
