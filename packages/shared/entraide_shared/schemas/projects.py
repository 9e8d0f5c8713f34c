from typing import Optional, List
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from .common import (
    OfferingStatus,
    PROJECT_STATUS_TRANSITIONS,
    ProjectPriority,
    ProjectStatus,
    ResourceKind,
    UserSummary,
)
from .resources import ResourceRead, ResourceSummary


class ProjectSummary(BaseModel):
    id: int
    location: str
    status: ProjectStatus
    needs_transportation: bool
    creator: Optional[UserSummary] = None


class ProjectRead(BaseModel):
    id: int
    creator_id: UUID
    location: str
    min_person_req: int
    needs_transportation: bool
    has_kids: bool
    has_elderly: bool
    has_shelter: bool
    priority: ProjectPriority
    status: ProjectStatus
    created_at: datetime
    creator: Optional[UserSummary] = None
    volunteer_count: int = 0


class VolunteerRead(BaseModel):
    id: int
    joined_at: datetime
    volunteer: UserSummary


class OutilRequestRead(BaseModel):
    id: int
    created_at: datetime
    outil: ResourceSummary


class OfferingRead(BaseModel):
    id: int
    kind: ResourceKind
    status: OfferingStatus
    created_at: datetime
    resource: ResourceSummary
    project: ProjectSummary
    offered_by: UserSummary


class ResourceDetail(ResourceRead):
    offerings: List[OfferingRead] = Field(default_factory=list)


class ProjectDetail(ProjectRead):
    volunteers: List[VolunteerRead] = Field(default_factory=list)
    outil_requests: List[OutilRequestRead] = Field(default_factory=list)
    materiel_offerings: List[OfferingRead] = Field(default_factory=list)
    outil_offerings: List[OfferingRead] = Field(default_factory=list)
    transport_offerings: List[OfferingRead] = Field(default_factory=list)


def validate_transition(current: ProjectStatus, target: ProjectStatus) -> tuple[bool, str]:
    """Validate a project lifecycle transition.

    Rules:
    - Requesting the current status is an error, not a no-op.
    - ``completed`` is terminal.
    - Otherwise any move listed in PROJECT_STATUS_TRANSITIONS is allowed.

    Returns (is_valid, error_message).
    """
    if current == target:
        return False, f"Project is already {current.value}"

    if target in PROJECT_STATUS_TRANSITIONS[current]:
        return True, ""

    if not PROJECT_STATUS_TRANSITIONS[current]:
        return False, f"Project is {current.value}; its status can no longer change"

    allowed = ", ".join(sorted(s.value for s in PROJECT_STATUS_TRANSITIONS[current]))
    return False, (
        f"Cannot transition from {current.value} to {target.value}. "
        f"Allowed: {allowed}"
    )
