"""Offerable resources: materiel, outils (tools) and transport."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, IntIdMixin


class ResourceBase(IntIdMixin, CreatedAtMixin, SQLModel):
    posted_by: uuid.UUID = Field(foreign_key="users.id", ondelete="CASCADE", nullable=False, index=True)
    name: str = Field(nullable=False)
    photo: Optional[str] = None
    location: str = Field(nullable=False)


class Materiel(ResourceBase, table=True):
    __tablename__ = "materiel"


class Outil(ResourceBase, table=True):
    __tablename__ = "outils"

    available: bool = Field(default=True, nullable=False)


class Transport(ResourceBase, table=True):
    __tablename__ = "transport"

    contact_number: Optional[str] = None
    max_duration: Optional[int] = None
