"""Credential store owned by the local identity provider."""

import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin


class Identity(CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "identities"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)
    password_hash: str = Field(nullable=False)  # bcrypt
