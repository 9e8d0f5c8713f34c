"""Project (aid request) model."""

import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, IntIdMixin


class Project(IntIdMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "projects"

    creator_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    location: str = Field(nullable=False)
    min_person_req: int = Field(nullable=False)
    needs_transportation: bool = Field(default=False, nullable=False)
    has_kids: bool = Field(default=False, nullable=False)
    has_elderly: bool = Field(default=False, nullable=False)
    has_shelter: bool = Field(default=True, nullable=False)
    priority: str = Field(default="low", nullable=False)  # derived: low | medium | high
    status: str = Field(default="open", nullable=False, index=True)  # open | in_progress | completed
