"""
Resource service layer: one implementation for materiel, outils and transport.

Handles:
- Creation with optional photo (upload first, row second, cleanup on failure)
- Public listing with location/name filters and public detail
- Owner-only update and delete through conditional writes
"""

from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import func
from sqlmodel import select

from entraide_api.core.errors import NotFound, Unauthorized, UpstreamFailure
from entraide_api.core.storage import BlobStore
from entraide_api.services.kinds import ResourceKindSpec
from entraide_api.services.offerings import resource_offerings
from entraide_api.services.photos import PhotoUpload, StoredPhoto, discard_photo, store_photo
from entraide_api.services.repository import FOREIGN_KEY_VIOLATION, Repository, StoreConstraintError
from entraide_api.services.validation import no_updates, prepare_fields, sanitize_update, translate_fields
from entraide_api.services.views import load_users, resource_read
from entraide_shared.schemas.projects import ResourceDetail
from entraide_shared.schemas.resources import ResourceRead

logger = structlog.get_logger()


async def _get_or_404(repo: Repository, spec: ResourceKindSpec, resource_id: int):
    row = await repo.get(spec.model, resource_id)
    if row is None:
        raise NotFound(spec.entity, resource_id, f"{spec.label} not found")
    return row


async def _check_owner(repo: Repository, spec: ResourceKindSpec, resource_id: int, actor_id: uuid.UUID, action: str):
    owner = await repo.owner_of(spec.model, resource_id, "posted_by")
    if owner is None:
        raise NotFound(spec.entity, resource_id, f"{spec.label} not found")
    if owner != actor_id:
        raise Unauthorized(action, f"Only the owner can {action} this {spec.label.lower()}")


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_resource(
    repo: Repository,
    blobs: BlobStore,
    spec: ResourceKindSpec,
    actor_id: uuid.UUID,
    payload: Mapping[str, Any],
    photo: Optional[PhotoUpload] = None,
    *,
    form: bool = False,
    max_photo_bytes: int,
) -> ResourceRead:
    fields, _ = translate_fields(spec.entity, payload)
    fields = prepare_fields(spec.entity, fields, form=form, partial=False)

    stored: Optional[StoredPhoto] = None
    try:
        if photo is not None:
            stored = await store_photo(blobs, photo, spec.photo_prefix, max_photo_bytes)
        row = spec.model(**fields, posted_by=actor_id, photo=stored.url if stored else None)
        try:
            row = await repo.insert(row)
        except StoreConstraintError as exc:
            if exc.kind == FOREIGN_KEY_VIOLATION:
                raise NotFound("user", actor_id, "User profile not found") from exc
            raise UpstreamFailure(f"{spec.entity}_creation", f"Failed to create {spec.label.lower()}") from exc
        await repo.commit()
    except Exception:
        await discard_photo(blobs, stored)
        raise

    logger.info(f"{spec.entity}.created", resource_id=row.id, posted_by=str(actor_id), photo=bool(stored))
    users = await load_users(repo, [actor_id])
    return resource_read(spec.kind, row, users.get(actor_id))


async def list_resources(
    repo: Repository,
    spec: ResourceKindSpec,
    *,
    location: Optional[str] = None,
    search: Optional[str] = None,
) -> list[ResourceRead]:
    model = spec.model
    stmt = select(model).order_by(model.created_at.desc(), model.id.desc())
    if location and location.strip():
        stmt = stmt.where(func.lower(model.location).contains(location.strip().lower(), autoescape=True))
    if search and search.strip():
        stmt = stmt.where(func.lower(model.name).contains(search.strip().lower(), autoescape=True))

    rows = await repo.all(stmt)
    users = await load_users(repo, [r.posted_by for r in rows])
    return [resource_read(spec.kind, r, users.get(r.posted_by)) for r in rows]


async def get_resource(repo: Repository, spec: ResourceKindSpec, resource_id: int) -> ResourceDetail:
    row = await _get_or_404(repo, spec, resource_id)
    users = await load_users(repo, [row.posted_by])
    base = resource_read(spec.kind, row, users.get(row.posted_by))
    return ResourceDetail(**base.model_dump(), offerings=await resource_offerings(repo, spec, row))


async def update_resource(
    repo: Repository,
    blobs: BlobStore,
    spec: ResourceKindSpec,
    actor_id: uuid.UUID,
    resource_id: int,
    payload: Mapping[str, Any],
    photo: Optional[PhotoUpload] = None,
    *,
    form: bool = False,
    max_photo_bytes: int,
) -> ResourceRead:
    await _check_owner(repo, spec, resource_id, actor_id, "update")

    fields = sanitize_update(spec.entity, payload)
    if not fields and photo is None:
        raise no_updates()
    fields = prepare_fields(spec.entity, fields, form=form, partial=True)

    stored: Optional[StoredPhoto] = None
    try:
        if photo is not None:
            stored = await store_photo(blobs, photo, spec.photo_prefix, max_photo_bytes)
            fields["photo"] = stored.url
        try:
            updated = await repo.update_owned(spec.model, resource_id, "posted_by", actor_id, fields)
        except StoreConstraintError as exc:
            raise UpstreamFailure(f"{spec.entity}_update", f"Failed to update {spec.label.lower()}") from exc
        if updated == 0:
            raise NotFound(spec.entity, resource_id, f"{spec.label} not found")
        await repo.commit()
    except Exception:
        await discard_photo(blobs, stored)
        raise

    logger.info(f"{spec.entity}.updated", resource_id=resource_id, fields=sorted(fields))
    row = await repo.get(spec.model, resource_id, fresh=True)
    users = await load_users(repo, [row.posted_by])
    return resource_read(spec.kind, row, users.get(row.posted_by))


async def delete_resource(repo: Repository, spec: ResourceKindSpec, actor_id: uuid.UUID, resource_id: int) -> None:
    await _check_owner(repo, spec, resource_id, actor_id, "delete")
    deleted = await repo.delete_owned(spec.model, resource_id, "posted_by", actor_id)
    if deleted == 0:
        raise NotFound(spec.entity, resource_id, f"{spec.label} not found")
    await repo.commit()
    logger.info(f"{spec.entity}.deleted", resource_id=resource_id, posted_by=str(actor_id))
