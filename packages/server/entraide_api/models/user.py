"""User profile model.

The primary key is the identity provider's user id; credentials live with
the provider (see ``identity.py``), never here.
"""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin


class User(CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "users"

    id: uuid.UUID = Field(primary_key=True, index=True, nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)
    name: str = Field(nullable=False)
    phone: Optional[str] = None
    location: Optional[str] = None
    photo: Optional[str] = None
    available_days: list[str] = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
