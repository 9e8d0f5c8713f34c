"""
Request-scoped dependencies shared by the routers.

Long-lived handles (session factory, identity provider, blob store,
settings) are built once in ``create_app`` and read from ``app.state``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from entraide_api.core.config import Settings
from entraide_api.core.database import get_session
from entraide_api.core.errors import ValidationFailed
from entraide_api.core.storage import BlobStore
from entraide_api.services.photos import PhotoUpload
from entraide_api.services.repository import Repository

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


async def get_repository(session: AsyncSession = Depends(get_session)) -> Repository:
    return Repository(session)


@dataclass
class RequestPayload:
    """A JSON or form body, with the uploaded photo split out."""

    fields: dict[str, Any] = field(default_factory=dict)
    photo: Optional[PhotoUpload] = None
    form: bool = False


async def read_payload(request: Request, settings: Settings = Depends(get_app_settings)) -> RequestPayload:
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        payload = RequestPayload(form=True)
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == "photo" and value.filename:
                    # One byte over the limit is enough to reject the file
                    data = await value.read(settings.max_photo_bytes + 1)
                    payload.photo = PhotoUpload(value.filename, value.content_type or "", data)
            else:
                payload.fields[key] = value
        return payload

    body = await request.body()
    if not body.strip():
        return RequestPayload()
    try:
        data = json.loads(body)
    except ValueError:
        raise ValidationFailed(["Request body must be valid JSON"], message="Malformed request body")
    if not isinstance(data, dict):
        raise ValidationFailed(["Request body must be a JSON object"], message="Malformed request body")
    return RequestPayload(fields=data)
