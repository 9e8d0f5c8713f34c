"""Conversion of table rows into the shared response schemas."""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

from sqlmodel import select

from entraide_api.models.project import Project
from entraide_api.models.user import User
from entraide_api.services.repository import Repository
from entraide_shared.schemas.common import ResourceKind, UserSummary
from entraide_shared.schemas.projects import ProjectRead, ProjectSummary
from entraide_shared.schemas.resources import ResourceRead, ResourceSummary
from entraide_shared.schemas.users import UserProfile


async def load_users(repo: Repository, ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, User]:
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    users = await repo.all(select(User).where(User.id.in_(wanted)))
    return {u.id: u for u in users}


def user_summary(user: Optional[User]) -> Optional[UserSummary]:
    if user is None:
        return None
    return UserSummary(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        location=user.location,
        photo=user.photo,
    )


def user_profile(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        email=user.email,
        name=user.name,
        phone=user.phone,
        location=user.location,
        photo=user.photo,
        available_days=list(user.available_days or []),
        created_at=user.created_at,
    )


def _resource_fields(kind: ResourceKind, row) -> dict:
    return {
        "id": row.id,
        "kind": kind,
        "name": row.name,
        "photo": row.photo,
        "location": row.location,
        "available": getattr(row, "available", None),
        "contact_number": getattr(row, "contact_number", None),
        "max_duration": getattr(row, "max_duration", None),
    }


def resource_summary(kind: ResourceKind, row, poster: Optional[User] = None) -> ResourceSummary:
    return ResourceSummary(**_resource_fields(kind, row), poster=user_summary(poster))


def resource_read(kind: ResourceKind, row, poster: Optional[User] = None) -> ResourceRead:
    return ResourceRead(
        **_resource_fields(kind, row),
        poster=user_summary(poster),
        posted_by=row.posted_by,
        created_at=row.created_at,
    )


def project_summary(project: Project, creator: Optional[User] = None) -> ProjectSummary:
    return ProjectSummary(
        id=project.id,
        location=project.location,
        status=project.status,
        needs_transportation=project.needs_transportation,
        creator=user_summary(creator),
    )


def project_read(project: Project, creator: Optional[User] = None, volunteer_count: int = 0) -> ProjectRead:
    return ProjectRead(
        id=project.id,
        creator_id=project.creator_id,
        location=project.location,
        min_person_req=project.min_person_req,
        needs_transportation=project.needs_transportation,
        has_kids=project.has_kids,
        has_elderly=project.has_elderly,
        has_shelter=project.has_shelter,
        priority=project.priority,
        status=project.status,
        created_at=project.created_at,
        creator=user_summary(creator),
        volunteer_count=volunteer_count,
    )
