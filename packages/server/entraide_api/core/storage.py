"""
Blob storage for uploaded photos: S3-compatible bucket or in-memory double.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from entraide_api.core.config import Settings


class BlobStoreError(Exception):
    """The blob store rejected or failed an operation."""


class BlobStore(Protocol):
    async def upload(self, data: bytes, content_type: str, destination: str) -> str:
        """Store ``data`` under ``destination`` and return its public URL."""
        ...

    async def delete(self, destination: str) -> None:
        ...


@dataclass
class InMemoryBlobStore:
    """Test double; ``fail_uploads``/``fail_deletes`` simulate an outage."""

    base_url: str = "https://blobs.example.test/entraide-photos"
    objects: dict[str, tuple[bytes, str]] = field(default_factory=dict)
    fail_uploads: bool = False
    fail_deletes: bool = False

    async def upload(self, data: bytes, content_type: str, destination: str) -> str:
        if self.fail_uploads:
            raise BlobStoreError(f"upload of {destination} refused")
        self.objects[destination] = (data, content_type)
        return f"{self.base_url}/{destination}"

    async def delete(self, destination: str) -> None:
        if self.fail_deletes:
            raise BlobStoreError(f"delete of {destination} refused")
        self.objects.pop(destination, None)


@dataclass
class S3BlobStore:
    """
    S3-compatible bucket (AWS, MinIO, Supabase storage, ...).

    The boto3 client is blocking, so calls are pushed to the threadpool.
    """

    bucket: str
    public_url: str
    endpoint: Optional[str] = None
    region: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    _client: object = field(default=None, init=False, repr=False)

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint,
                region_name=self.region,
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
            )
        return self._client

    async def upload(self, data: bytes, content_type: str, destination: str) -> str:
        try:
            await run_in_threadpool(
                self.client.put_object,
                Bucket=self.bucket,
                Key=destination,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(str(exc)) from exc
        return f"{self.public_url.rstrip('/')}/{destination}"

    async def delete(self, destination: str) -> None:
        try:
            await run_in_threadpool(self.client.delete_object, Bucket=self.bucket, Key=destination)
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(str(exc)) from exc


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.use_in_memory_backends:
        return InMemoryBlobStore(base_url=settings.storage_public_url)
    return S3BlobStore(
        bucket=settings.storage_bucket,
        public_url=settings.storage_public_url,
        endpoint=settings.storage_endpoint,
        region=settings.storage_region,
        access_key_id=settings.storage_access_key_id,
        secret_access_key=settings.storage_secret_access_key,
    )
