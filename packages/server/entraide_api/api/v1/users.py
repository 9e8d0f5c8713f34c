"""
User profile endpoints. A user may only edit their own profile.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from entraide_api.api.v1.deps import (
    RequestPayload,
    get_app_settings,
    get_blob_store,
    get_repository,
    read_payload,
)
from entraide_api.core.auth import AuthenticatedUser, get_current_user
from entraide_api.core.config import Settings
from entraide_api.core.storage import BlobStore
from entraide_api.services import users as user_service
from entraide_api.services.repository import Repository

router = APIRouter()


@router.patch("/{user_id}")
async def update_user(
    user_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_current_user),
    payload: RequestPayload = Depends(read_payload),
    repo: Repository = Depends(get_repository),
):
    user = await user_service.update_profile(repo, auth.user_id, user_id, payload.fields)
    return {"message": "Profile updated successfully", "user": user}


@router.put("/{user_id}/photo")
async def update_user_photo(
    user_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_current_user),
    payload: RequestPayload = Depends(read_payload),
    repo: Repository = Depends(get_repository),
    blobs: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_app_settings),
):
    user = await user_service.update_photo(
        repo,
        blobs,
        auth.user_id,
        user_id,
        payload.photo,
        max_photo_bytes=settings.max_photo_bytes,
    )
    return {"message": "Profile photo updated successfully", "user": user}
