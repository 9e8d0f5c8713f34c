"""
Project service layer: aid requests, their lifecycle, and tool requests.

Handles:
- Creation with derived priority and optional requested tools
- Public listing (status filter, creator, volunteer count) and full detail
- Creator-only update, delete and status transitions
- Tool requests by the creator
"""

from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import func
from sqlmodel import select

from entraide_api.core.errors import (
    Conflict,
    ConflictReason,
    NotFound,
    Unauthorized,
    UpstreamFailure,
    ValidationFailed,
)
from entraide_api.models.assignments import ProjectOutilRequest, ProjectVolunteer
from entraide_api.models.project import Project
from entraide_api.models.resources import Outil
from entraide_api.models.user import User
from entraide_api.services.offerings import project_offerings
from entraide_api.services.repository import (
    FOREIGN_KEY_VIOLATION,
    UNIQUE_VIOLATION,
    Repository,
    StoreConstraintError,
)
from entraide_api.services.validation import no_updates, prepare_fields, sanitize_update, translate_fields
from entraide_api.services.views import load_users, project_read, resource_summary, user_summary
from entraide_shared.schemas.common import ProjectPriority, ProjectStatus, ResourceKind
from entraide_shared.schemas.projects import (
    OutilRequestRead,
    ProjectDetail,
    ProjectRead,
    VolunteerRead,
    validate_transition,
)

logger = structlog.get_logger()

PROJECT_DEFAULTS = {
    "needs_transportation": False,
    "has_kids": False,
    "has_elderly": False,
    "has_shelter": True,
}

FLAG_FIELDS = tuple(PROJECT_DEFAULTS)

INVALID_STATUS_MESSAGE = "Status must be: open, in_progress, or completed"


def derive_priority(
    needs_transportation: bool,
    has_kids: bool,
    has_elderly: bool,
    has_shelter: bool,
) -> ProjectPriority:
    if not has_shelter or (has_kids and has_elderly):
        return ProjectPriority.HIGH
    if has_kids or has_elderly or needs_transportation:
        return ProjectPriority.MEDIUM
    return ProjectPriority.LOW


def parse_status(value: Any) -> ProjectStatus:
    try:
        return ProjectStatus(value)
    except ValueError:
        raise ValidationFailed([INVALID_STATUS_MESSAGE], message="Invalid status")


async def get_project_or_404(repo: Repository, project_id: int) -> Project:
    project = await repo.get(Project, project_id)
    if project is None:
        raise NotFound("project", project_id, "Project not found")
    return project


async def count_volunteers(repo: Repository, project_id: int) -> int:
    stmt = select(func.count()).select_from(ProjectVolunteer).where(ProjectVolunteer.project_id == project_id)
    [row] = await repo.rows(stmt)
    return row[0]


def _requested_outil_ids(payload: Mapping[str, Any]) -> list[int]:
    raw = payload.get("requestedOutilIds")
    if raw is None:
        return []
    if isinstance(raw, str):
        # Multipart clients send "3,7"
        raw = [int(p) if p.strip().isdigit() else p for p in raw.split(",") if p.strip()]
    if not isinstance(raw, list):
        raise ValidationFailed(["requestedOutilIds must be an array of tool ids"])
    ids: list[int] = []
    for value in raw:
        if isinstance(value, int) and not isinstance(value, bool) and value not in ids:
            ids.append(value)
        else:
            logger.info("project.requested_outil_skipped", value=value, reason="not an id")
    return ids


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_project(
    repo: Repository, actor_id: uuid.UUID, payload: Mapping[str, Any], *, form: bool = False
) -> ProjectRead:
    fields, _ = translate_fields("project", payload)
    fields = prepare_fields("project", fields, form=form, partial=False)
    requested = _requested_outil_ids(payload)

    values = {**PROJECT_DEFAULTS, **fields}
    priority = derive_priority(*(values[f] for f in FLAG_FIELDS))
    project = Project(
        **values,
        creator_id=actor_id,
        priority=priority.value,
        status=ProjectStatus.OPEN.value,
    )
    try:
        project = await repo.insert(project)
    except StoreConstraintError as exc:
        if exc.kind == FOREIGN_KEY_VIOLATION:
            raise NotFound("user", actor_id, "User profile not found") from exc
        raise UpstreamFailure("project_creation", "Failed to create project") from exc

    existing = await repo.existing_ids(Outil, requested)
    for missing in (i for i in requested if i not in existing):
        logger.info("project.requested_outil_skipped", project_id=project.id, outil_id=missing, reason="not found")
    # A tool deleted since the lookup fails its foreign key and is skipped too
    linked = await repo.insert_each(
        [ProjectOutilRequest(project_id=project.id, outil_id=i) for i in requested if i in existing],
        skip_kind=FOREIGN_KEY_VIOLATION,
    )
    await repo.commit()

    logger.info(
        "project.created",
        project_id=project.id,
        creator_id=str(actor_id),
        priority=project.priority,
        requested_outils=len(linked),
    )
    users = await load_users(repo, [actor_id])
    return project_read(project, users.get(actor_id))


async def list_projects(repo: Repository, status: Optional[str] = None) -> list[ProjectRead]:
    stmt = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
    if status:
        stmt = stmt.where(Project.status == parse_status(status).value)
    projects = await repo.all(stmt)
    if not projects:
        return []

    counts_stmt = (
        select(ProjectVolunteer.project_id, func.count().label("cnt"))
        .where(ProjectVolunteer.project_id.in_([p.id for p in projects]))
        .group_by(ProjectVolunteer.project_id)
    )
    counts = {row.project_id: row.cnt for row in await repo.rows(counts_stmt)}
    users = await load_users(repo, [p.creator_id for p in projects])
    return [project_read(p, users.get(p.creator_id), counts.get(p.id, 0)) for p in projects]


async def get_project(repo: Repository, project_id: int) -> ProjectDetail:
    project = await get_project_or_404(repo, project_id)

    volunteer_rows = await repo.rows(
        select(ProjectVolunteer, User)
        .join(User, User.id == ProjectVolunteer.volunteer_id)
        .where(ProjectVolunteer.project_id == project.id)
        .order_by(ProjectVolunteer.joined_at, ProjectVolunteer.id)
    )
    request_rows = await repo.rows(
        select(ProjectOutilRequest, Outil)
        .join(Outil, Outil.id == ProjectOutilRequest.outil_id)
        .where(ProjectOutilRequest.project_id == project.id)
        .order_by(ProjectOutilRequest.created_at, ProjectOutilRequest.id)
    )
    users = await load_users(repo, [project.creator_id] + [o.posted_by for _, o in request_rows])
    offerings = await project_offerings(repo, project)

    base = project_read(project, users.get(project.creator_id), len(volunteer_rows))
    return ProjectDetail(
        **base.model_dump(),
        volunteers=[
            VolunteerRead(id=v.id, joined_at=v.joined_at, volunteer=user_summary(u))
            for v, u in volunteer_rows
        ],
        outil_requests=[
            OutilRequestRead(
                id=r.id,
                created_at=r.created_at,
                outil=resource_summary(ResourceKind.OUTIL, o, users.get(o.posted_by)),
            )
            for r, o in request_rows
        ],
        materiel_offerings=offerings[ResourceKind.MATERIEL],
        outil_offerings=offerings[ResourceKind.OUTIL],
        transport_offerings=offerings[ResourceKind.TRANSPORT],
    )


async def update_project(
    repo: Repository, actor_id: uuid.UUID, project_id: int, payload: Mapping[str, Any], *, form: bool = False
) -> ProjectRead:
    project = await get_project_or_404(repo, project_id)
    if project.creator_id != actor_id:
        raise Unauthorized("update", "Only project creator can update this project")

    fields = sanitize_update("project", payload)
    if not fields:
        raise no_updates()
    fields = prepare_fields("project", fields, form=form, partial=True)

    if any(f in fields for f in FLAG_FIELDS):
        merged = {f: fields.get(f, getattr(project, f)) for f in FLAG_FIELDS}
        fields["priority"] = derive_priority(*(merged[f] for f in FLAG_FIELDS)).value

    updated = await repo.update_owned(Project, project_id, "creator_id", actor_id, fields)
    if updated == 0:
        raise NotFound("project", project_id, "Project not found")
    await repo.commit()

    logger.info("project.updated", project_id=project_id, fields=sorted(fields))
    project = await repo.get(Project, project_id, fresh=True)
    users = await load_users(repo, [project.creator_id])
    return project_read(project, users.get(project.creator_id), await count_volunteers(repo, project_id))


async def delete_project(repo: Repository, actor_id: uuid.UUID, project_id: int) -> None:
    owner = await repo.owner_of(Project, project_id, "creator_id")
    if owner is None:
        raise NotFound("project", project_id, "Project not found")
    if owner != actor_id:
        raise Unauthorized("delete", "Only project creator can delete this project")

    deleted = await repo.delete_owned(Project, project_id, "creator_id", actor_id)
    if deleted == 0:
        raise NotFound("project", project_id, "Project not found")
    await repo.commit()
    logger.info("project.deleted", project_id=project_id, creator_id=str(actor_id))


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def set_status(repo: Repository, actor_id: uuid.UUID, project_id: int, status: Any) -> ProjectRead:
    project = await get_project_or_404(repo, project_id)
    if project.creator_id != actor_id:
        raise Unauthorized("status_update", "Only project creator can update project status")

    target = parse_status(status)
    current = ProjectStatus(project.status)
    ok, message = validate_transition(current, target)
    if not ok:
        reason = ConflictReason.STATUS_UNCHANGED if current == target else ConflictReason.INVALID_TRANSITION
        raise Conflict(reason, message)

    updated = await repo.update_where(
        Project,
        {"status": target.value},
        Project.id == project_id,
        Project.creator_id == actor_id,
        Project.status == current.value,
    )
    if updated == 0:
        raise Conflict(ConflictReason.INVALID_TRANSITION, "Project status changed concurrently; reload and retry")
    await repo.commit()

    logger.info("project.status_changed", project_id=project_id, from_status=current.value, to_status=target.value)
    project = await repo.get(Project, project_id, fresh=True)
    users = await load_users(repo, [project.creator_id])
    return project_read(project, users.get(project.creator_id), await count_volunteers(repo, project_id))


# ---------------------------------------------------------------------------
# Tool requests
# ---------------------------------------------------------------------------


async def request_outil(repo: Repository, actor_id: uuid.UUID, project_id: int, outil_id: Any) -> OutilRequestRead:
    """Record that a project needs a tool. Not gated on project status."""
    project = await get_project_or_404(repo, project_id)
    if project.creator_id != actor_id:
        raise Unauthorized("request", "Only project creator can request tools")

    if not isinstance(outil_id, int) or isinstance(outil_id, bool) or outil_id < 1:
        raise ValidationFailed(["Valid outil ID is required"])

    outil = await repo.get(Outil, outil_id)
    if outil is None:
        raise NotFound("outil", outil_id, "Tool not found")

    try:
        request = await repo.insert(ProjectOutilRequest(project_id=project_id, outil_id=outil_id))
    except StoreConstraintError as exc:
        if exc.kind == UNIQUE_VIOLATION:
            raise Conflict(ConflictReason.TOOL_ALREADY_REQUESTED, "Tool already requested for this project") from exc
        if exc.kind == FOREIGN_KEY_VIOLATION:
            raise NotFound("outil", outil_id, "Tool not found") from exc
        raise UpstreamFailure("tool_request", "Failed to request tool") from exc
    await repo.commit()

    logger.info("project.outil_requested", project_id=project_id, outil_id=outil_id)
    users = await load_users(repo, [outil.posted_by])
    return OutilRequestRead(
        id=request.id,
        created_at=request.created_at,
        outil=resource_summary(ResourceKind.OUTIL, outil, users.get(outil.posted_by)),
    )
