"""Offering join tables: a resource proposed for a project by a user.

One row per (project, resource); the unique constraint is what turns a
second offer into a conflict.
"""

import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, IntIdMixin


class OfferingBase(IntIdMixin, CreatedAtMixin, SQLModel):
    project_id: int = Field(foreign_key="projects.id", ondelete="CASCADE", nullable=False, index=True)
    offered_by: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False)
    status: str = Field(default="pending", nullable=False)  # pending | accepted | declined


class MaterielOffering(OfferingBase, table=True):
    __tablename__ = "materiel_offerings"
    __table_args__ = (
        sa.UniqueConstraint("project_id", "materiel_id", name="uq_materiel_offerings_project_resource"),
    )

    materiel_id: int = Field(foreign_key="materiel.id", ondelete="CASCADE", nullable=False, index=True)


class OutilOffering(OfferingBase, table=True):
    __tablename__ = "outil_offerings"
    __table_args__ = (
        sa.UniqueConstraint("project_id", "outil_id", name="uq_outil_offerings_project_resource"),
    )

    outil_id: int = Field(foreign_key="outils.id", ondelete="CASCADE", nullable=False, index=True)


class TransportOffering(OfferingBase, table=True):
    __tablename__ = "transport_offerings"
    __table_args__ = (
        sa.UniqueConstraint("project_id", "transport_id", name="uq_transport_offerings_project_resource"),
    )

    transport_id: int = Field(foreign_key="transport.id", ondelete="CASCADE", nullable=False, index=True)
