"""Project join tables: volunteers and tool requests."""

from datetime import datetime, timezone
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, IntIdMixin


class ProjectVolunteer(IntIdMixin, SQLModel, table=True):
    __tablename__ = "project_volunteers"
    __table_args__ = (
        sa.UniqueConstraint("project_id", "volunteer_id", name="uq_project_volunteers_pair"),
    )

    project_id: int = Field(foreign_key="projects.id", ondelete="CASCADE", nullable=False, index=True)
    volunteer_id: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    joined_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )


class ProjectOutilRequest(IntIdMixin, CreatedAtMixin, SQLModel, table=True):
    """A project's need for a specific tool, independent of any offering."""

    __tablename__ = "project_outil_requests"
    __table_args__ = (
        sa.UniqueConstraint("project_id", "outil_id", name="uq_project_outil_requests_pair"),
    )

    project_id: int = Field(foreign_key="projects.id", ondelete="CASCADE", nullable=False, index=True)
    outil_id: int = Field(foreign_key="outils.id", ondelete="CASCADE", nullable=False, index=True)
