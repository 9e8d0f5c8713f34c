from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel

class ProjectStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

# Allowed lifecycle moves; completed is terminal
PROJECT_STATUS_TRANSITIONS: dict["ProjectStatus", set["ProjectStatus"]] = {
    ProjectStatus.OPEN: {ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED},
    ProjectStatus.IN_PROGRESS: {ProjectStatus.OPEN, ProjectStatus.COMPLETED},
    ProjectStatus.COMPLETED: set(),
}

class ProjectPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

class ResourceKind(str, Enum):
    MATERIEL = "materiel"
    OUTIL = "outil"
    TRANSPORT = "transport"

class OfferingStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

class UserSummary(BaseModel):
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    photo: Optional[str] = None

class ErrorBody(BaseModel):
    code: str
    message: str
    status: int

class ErrorResponse(BaseModel):
    error: ErrorBody
