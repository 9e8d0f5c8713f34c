"""
Offering coordination: proposing a resource to a project and resolving it.

Handles:
- Existence checks on both sides and the completed-project gate
- Uniqueness of (project, resource), surfaced as ALREADY_OFFERED
- Accept/decline of pending offerings by the project creator
- Denormalized offering views for project and resource detail pages
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlmodel import select

from entraide_api.core.errors import (
    Conflict,
    ConflictReason,
    NotFound,
    Unauthorized,
    UpstreamFailure,
    ValidationFailed,
)
from entraide_api.models.project import Project
from entraide_api.models.user import User
from entraide_api.services.kinds import RESOURCE_KINDS, ResourceKindSpec
from entraide_api.services.repository import (
    FOREIGN_KEY_VIOLATION,
    UNIQUE_VIOLATION,
    Repository,
    StoreConstraintError,
)
from entraide_api.services.views import load_users, project_summary, resource_summary, user_summary
from entraide_shared.schemas.common import OfferingStatus, ProjectStatus, ResourceKind
from entraide_shared.schemas.projects import OfferingRead

logger = structlog.get_logger()

RESOLVED_STATUSES = (OfferingStatus.ACCEPTED.value, OfferingStatus.DECLINED.value)


def offering_read(
    spec: ResourceKindSpec,
    offering: Any,
    resource: Any,
    project: Project,
    users: dict[uuid.UUID, User],
) -> OfferingRead:
    return OfferingRead(
        id=offering.id,
        kind=spec.kind,
        status=offering.status,
        created_at=offering.created_at,
        resource=resource_summary(spec.kind, resource, users.get(resource.posted_by)),
        project=project_summary(project, users.get(project.creator_id)),
        offered_by=user_summary(users[offering.offered_by]),
    )


async def _missing_reference(
    repo: Repository, spec: ResourceKindSpec, resource_id: int, project_id: int, actor_id: uuid.UUID
) -> NotFound:
    """Work out which side of a failed foreign key disappeared."""
    if not await repo.exists(spec.model, resource_id):
        return NotFound(spec.entity, resource_id, f"{spec.label} not found")
    if not await repo.exists(Project, project_id):
        return NotFound("project", project_id, "Project not found")
    return NotFound("user", actor_id, "User profile not found")


async def offer_resource(
    repo: Repository,
    spec: ResourceKindSpec,
    resource_id: int,
    project_id: int,
    actor_id: uuid.UUID,
) -> OfferingRead:
    resource = await repo.get(spec.model, resource_id)
    if resource is None:
        raise NotFound(spec.entity, resource_id, f"{spec.label} not found")

    project = await repo.get(Project, project_id)
    if project is None:
        raise NotFound("project", project_id, "Project not found")

    if project.status == ProjectStatus.COMPLETED.value:
        raise Conflict(
            ConflictReason.PROJECT_COMPLETED,
            f"Cannot offer {spec.label.lower()} to completed projects",
        )

    offering = spec.offering_model(
        project_id=project_id,
        offered_by=actor_id,
        status=OfferingStatus.PENDING.value,
        **{spec.offering_fk: resource_id},
    )
    try:
        offering = await repo.insert(offering)
    except StoreConstraintError as exc:
        if exc.kind == UNIQUE_VIOLATION:
            raise Conflict(
                ConflictReason.ALREADY_OFFERED,
                f"This {spec.label.lower()} has already been offered to this project",
            ) from exc
        if exc.kind == FOREIGN_KEY_VIOLATION:
            raise await _missing_reference(repo, spec, resource_id, project_id, actor_id) from exc
        raise UpstreamFailure("offering_insert", f"Failed to offer {spec.label.lower()}") from exc
    await repo.commit()

    logger.info(
        "offering.created",
        kind=spec.kind.value,
        offering_id=offering.id,
        resource_id=resource_id,
        project_id=project_id,
        offered_by=str(actor_id),
    )

    users = await load_users(repo, [resource.posted_by, project.creator_id, actor_id])
    return offering_read(spec, offering, resource, project, users)


async def respond_to_offering(
    repo: Repository,
    spec: ResourceKindSpec,
    project_id: int,
    offering_id: int,
    actor_id: uuid.UUID,
    status: str,
) -> OfferingRead:
    """Accept or decline a pending offering. Only the project creator may respond."""
    project = await repo.get(Project, project_id)
    if project is None:
        raise NotFound("project", project_id, "Project not found")
    if project.creator_id != actor_id:
        raise Unauthorized("response", "Only project creator can respond to offerings")

    if status not in RESOLVED_STATUSES:
        raise ValidationFailed(["Status must be: accepted or declined"], message="Invalid offering status")

    if project.status == ProjectStatus.COMPLETED.value:
        raise Conflict(ConflictReason.PROJECT_COMPLETED, "Cannot respond to offerings on completed projects")

    offering = await repo.get(spec.offering_model, offering_id)
    if offering is None or offering.project_id != project_id:
        raise NotFound("offering", offering_id, "Offering not found")
    if offering.status != OfferingStatus.PENDING.value:
        raise Conflict(ConflictReason.OFFERING_ALREADY_RESOLVED, f"Offering is already {offering.status}")

    model = spec.offering_model
    updated = await repo.update_where(
        model,
        {"status": status},
        model.id == offering_id,
        model.status == OfferingStatus.PENDING.value,
    )
    if updated == 0:
        raise Conflict(ConflictReason.OFFERING_ALREADY_RESOLVED, "Offering was resolved concurrently")
    await repo.commit()

    logger.info("offering.resolved", kind=spec.kind.value, offering_id=offering_id, status=status)

    offering = await repo.get(model, offering_id, fresh=True)
    resource = await repo.get(spec.model, getattr(offering, spec.offering_fk))
    users = await load_users(repo, [resource.posted_by, project.creator_id, offering.offered_by])
    return offering_read(spec, offering, resource, project, users)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


async def project_offerings(repo: Repository, project: Project) -> dict[ResourceKind, list[OfferingRead]]:
    """All offerings of every kind for a project, oldest first."""
    fetched: dict[ResourceKind, list[tuple[Any, Any]]] = {}
    user_ids: set[uuid.UUID] = {project.creator_id}
    for kind, spec in RESOURCE_KINDS.items():
        stmt = (
            select(spec.offering_model, spec.model)
            .join(spec.model, spec.model.id == spec.offering_resource_column())
            .where(spec.offering_model.project_id == project.id)
            .order_by(spec.offering_model.created_at, spec.offering_model.id)
        )
        rows = await repo.rows(stmt)
        fetched[kind] = rows
        for offering, resource in rows:
            user_ids.update((offering.offered_by, resource.posted_by))

    users = await load_users(repo, user_ids)
    return {
        kind: [offering_read(RESOURCE_KINDS[kind], o, r, project, users) for o, r in rows]
        for kind, rows in fetched.items()
    }


async def resource_offerings(repo: Repository, spec: ResourceKindSpec, resource: Any) -> list[OfferingRead]:
    """Offerings made with one resource, each with its project and creator."""
    stmt = (
        select(spec.offering_model, Project)
        .join(Project, Project.id == spec.offering_model.project_id)
        .where(spec.offering_resource_column() == resource.id)
        .order_by(spec.offering_model.created_at.desc(), spec.offering_model.id.desc())
    )
    rows = await repo.rows(stmt)
    user_ids = {resource.posted_by}
    for offering, project in rows:
        user_ids.update((offering.offered_by, project.creator_id))
    users = await load_users(repo, user_ids)
    return [offering_read(spec, o, resource, p, users) for o, p in rows]
