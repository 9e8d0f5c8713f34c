"""Volunteer membership: join (gated on project status) and idempotent leave."""

from __future__ import annotations

import uuid

import structlog

from entraide_api.core.errors import Conflict, ConflictReason, NotFound, UpstreamFailure
from entraide_api.models.assignments import ProjectVolunteer
from entraide_api.models.project import Project
from entraide_api.services.projects import get_project_or_404
from entraide_api.services.repository import (
    FOREIGN_KEY_VIOLATION,
    UNIQUE_VIOLATION,
    Repository,
    StoreConstraintError,
)
from entraide_api.services.views import load_users, user_summary
from entraide_shared.schemas.common import ProjectStatus
from entraide_shared.schemas.projects import VolunteerRead

logger = structlog.get_logger()


async def join_project(repo: Repository, actor_id: uuid.UUID, project_id: int) -> VolunteerRead:
    project = await get_project_or_404(repo, project_id)
    if project.status == ProjectStatus.COMPLETED.value:
        raise Conflict(ConflictReason.PROJECT_COMPLETED, "Cannot volunteer for completed projects")

    try:
        membership = await repo.insert(ProjectVolunteer(project_id=project_id, volunteer_id=actor_id))
    except StoreConstraintError as exc:
        if exc.kind == UNIQUE_VIOLATION:
            raise Conflict(
                ConflictReason.ALREADY_VOLUNTEERING,
                "You are already volunteering for this project",
            ) from exc
        if exc.kind == FOREIGN_KEY_VIOLATION:
            if not await repo.exists(Project, project_id):
                raise NotFound("project", project_id, "Project not found") from exc
            raise NotFound("user", actor_id, "User profile not found") from exc
        raise UpstreamFailure("volunteer_insert", "Failed to join project") from exc
    await repo.commit()

    logger.info("volunteer.joined", project_id=project_id, volunteer_id=str(actor_id))
    users = await load_users(repo, [actor_id])
    return VolunteerRead(id=membership.id, joined_at=membership.joined_at, volunteer=user_summary(users[actor_id]))


async def leave_project(repo: Repository, actor_id: uuid.UUID, project_id: int) -> None:
    """Remove the caller's membership; leaving twice is not an error."""
    removed = await repo.delete_where(
        ProjectVolunteer,
        ProjectVolunteer.project_id == project_id,
        ProjectVolunteer.volunteer_id == actor_id,
    )
    await repo.commit()
    logger.info("volunteer.left", project_id=project_id, volunteer_id=str(actor_id), removed=removed)
