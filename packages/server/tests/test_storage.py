"""
Tests for photo intake and the blob store doubles.

Tests cover:
- Content type and extension checks, size limit
- Object key layout and filename sanitization
- Upload failures surfacing as PHOTO_UPLOAD_FAILED
- Best-effort cleanup that never raises
- Backend selection from settings
"""

from __future__ import annotations

import pytest

from entraide_api.core.config import Settings
from entraide_api.core.errors import UpstreamFailure, ValidationFailed
from entraide_api.core.storage import InMemoryBlobStore, S3BlobStore, build_blob_store
from entraide_api.services.photos import (
    PhotoUpload,
    StoredPhoto,
    check_photo,
    discard_photo,
    object_key,
    store_photo,
)

MAX = 1024


class TestCheckPhoto:
    @pytest.mark.parametrize(
        "filename,content_type",
        [("a.png", "image/png"), ("a.JPG", "image/jpeg"), ("a.jpeg", "image/jpg"), ("a.webp", "image/webp")],
    )
    def test_accepted(self, filename, content_type):
        check_photo(PhotoUpload(filename, content_type, b"x"), MAX)

    @pytest.mark.parametrize(
        "filename,content_type",
        [("a.gif", "image/gif"), ("a.png", "text/plain"), ("a.exe", "image/png"), ("noext", "image/png")],
    )
    def test_rejected_type(self, filename, content_type):
        with pytest.raises(ValidationFailed) as exc_info:
            check_photo(PhotoUpload(filename, content_type, b"x"), MAX)
        assert exc_info.value.code == "INVALID_FILE_TYPE"

    def test_too_large(self):
        with pytest.raises(ValidationFailed) as exc_info:
            check_photo(PhotoUpload("a.png", "image/png", b"x" * (MAX + 1)), MAX)
        assert exc_info.value.code == "FILE_TOO_LARGE"


class TestObjectKey:
    def test_layout(self):
        assert object_key("outil-photos", "saw.png", now_ms=1700000000000) == "outil-photos/1700000000000-saw.png"

    def test_path_and_spaces_sanitized(self):
        key = object_key("user-photos/", "../../etc/my photo (1).jpg", now_ms=1)
        assert key == "user-photos/1-my_photo_1_.jpg"


class TestStorePhoto:
    async def test_stores_and_returns_url(self):
        blobs = InMemoryBlobStore(base_url="https://cdn.test/bucket")
        stored = await store_photo(blobs, PhotoUpload("a.png", "IMAGE/PNG", b"data"), "materiel-photos", MAX)
        assert stored.url == f"https://cdn.test/bucket/{stored.key}"
        assert blobs.objects[stored.key] == (b"data", "image/png")

    async def test_upload_failure(self):
        blobs = InMemoryBlobStore(fail_uploads=True)
        with pytest.raises(UpstreamFailure) as exc_info:
            await store_photo(blobs, PhotoUpload("a.png", "image/png", b"data"), "materiel-photos", MAX)
        assert exc_info.value.code == "PHOTO_UPLOAD_FAILED"
        assert exc_info.value.status_code == 502

    async def test_cleanup_failure_is_swallowed(self):
        blobs = InMemoryBlobStore(fail_deletes=True)
        await discard_photo(blobs, StoredPhoto(key="k", url="u"))

    async def test_cleanup_removes_object(self):
        blobs = InMemoryBlobStore()
        stored = await store_photo(blobs, PhotoUpload("a.png", "image/png", b"data"), "p", MAX)
        await discard_photo(blobs, stored)
        assert blobs.objects == {}


class TestBuildBlobStore:
    def test_in_memory(self):
        assert isinstance(build_blob_store(Settings(use_in_memory_backends=True)), InMemoryBlobStore)

    def test_s3(self):
        store = build_blob_store(Settings(storage_bucket="photos", storage_endpoint="http://minio:9000"))
        assert isinstance(store, S3BlobStore)
        assert store.bucket == "photos"
        assert store.endpoint == "http://minio:9000"
