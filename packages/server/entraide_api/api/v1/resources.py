"""
Resource endpoints, one router per kind (materiel, outils, transport).

Bodies may be JSON or multipart; multipart bodies can carry a ``photo`` file.
"""

from __future__ import annotations

from typing import Optional

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
from entraide_api.core.errors import ValidationFailed
from entraide_api.core.storage import BlobStore
from entraide_api.services import offerings as offering_service
from entraide_api.services import resources as resource_service
from entraide_api.services.kinds import RESOURCE_KINDS, ResourceKindSpec
from entraide_api.services.repository import Repository
from entraide_shared.schemas.common import ResourceKind


def _project_id(payload: RequestPayload) -> int:
    raw = payload.fields.get("projectId", payload.fields.get("project_id"))
    if isinstance(raw, str) and raw.strip().isdigit():
        raw = int(raw)
    if not isinstance(raw, int) or isinstance(raw, bool) or raw < 1:
        raise ValidationFailed(["Valid project ID is required"])
    return raw


def build_resource_router(spec: ResourceKindSpec) -> APIRouter:
    router = APIRouter()
    label = spec.label
    key = spec.entity

    @router.post("", status_code=201)
    async def create_resource(
        auth: AuthenticatedUser = Depends(get_current_user),
        payload: RequestPayload = Depends(read_payload),
        repo: Repository = Depends(get_repository),
        blobs: BlobStore = Depends(get_blob_store),
        settings: Settings = Depends(get_app_settings),
    ):
        resource = await resource_service.create_resource(
            repo,
            blobs,
            spec,
            auth.user_id,
            payload.fields,
            payload.photo,
            form=payload.form,
            max_photo_bytes=settings.max_photo_bytes,
        )
        return {"message": f"{label} created successfully", key: resource}

    @router.get("")
    async def list_resources(
        location: Optional[str] = None,
        search: Optional[str] = None,
        repo: Repository = Depends(get_repository),
    ):
        items = await resource_service.list_resources(repo, spec, location=location, search=search)
        return {"message": f"{label} retrieved successfully", "items": items, "total": len(items)}

    @router.get("/{resource_id}")
    async def get_resource(resource_id: int, repo: Repository = Depends(get_repository)):
        resource = await resource_service.get_resource(repo, spec, resource_id)
        return {"message": f"{label} retrieved successfully", key: resource}

    @router.patch("/{resource_id}")
    async def update_resource(
        resource_id: int,
        auth: AuthenticatedUser = Depends(get_current_user),
        payload: RequestPayload = Depends(read_payload),
        repo: Repository = Depends(get_repository),
        blobs: BlobStore = Depends(get_blob_store),
        settings: Settings = Depends(get_app_settings),
    ):
        resource = await resource_service.update_resource(
            repo,
            blobs,
            spec,
            auth.user_id,
            resource_id,
            payload.fields,
            payload.photo,
            form=payload.form,
            max_photo_bytes=settings.max_photo_bytes,
        )
        return {"message": f"{label} updated successfully", key: resource}

    @router.delete("/{resource_id}")
    async def delete_resource(
        resource_id: int,
        auth: AuthenticatedUser = Depends(get_current_user),
        repo: Repository = Depends(get_repository),
    ):
        await resource_service.delete_resource(repo, spec, auth.user_id, resource_id)
        return {"message": f"{label} deleted successfully"}

    @router.post("/{resource_id}/offer", status_code=201)
    async def offer_resource(
        resource_id: int,
        auth: AuthenticatedUser = Depends(get_current_user),
        payload: RequestPayload = Depends(read_payload),
        repo: Repository = Depends(get_repository),
    ):
        """Offer this resource to a project."""
        offering = await offering_service.offer_resource(
            repo, spec, resource_id, _project_id(payload), auth.user_id
        )
        return {"message": f"{label} offered successfully", "offering": offering}

    return router


materiel_router = build_resource_router(RESOURCE_KINDS[ResourceKind.MATERIEL])
outils_router = build_resource_router(RESOURCE_KINDS[ResourceKind.OUTIL])
transport_router = build_resource_router(RESOURCE_KINDS[ResourceKind.TRANSPORT])
