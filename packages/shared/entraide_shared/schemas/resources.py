"""Resource (materiel / outil / transport) wire schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from .common import ResourceKind, UserSummary


class ResourceSummary(BaseModel):
    """Compact view used inside offerings and tool requests."""
    id: int
    kind: ResourceKind
    name: str
    photo: Optional[str] = None
    location: str
    # Kind-specific extras; left unset for kinds that do not carry them
    available: Optional[bool] = None
    contact_number: Optional[str] = None
    max_duration: Optional[int] = None
    poster: Optional[UserSummary] = None


class ResourceRead(ResourceSummary):
    posted_by: UUID
    created_at: datetime
