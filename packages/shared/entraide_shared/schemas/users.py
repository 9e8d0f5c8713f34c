"""User profile and session schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel, EmailStr, Field, UUID4


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserProfile(BaseModel):
    """A user's own profile."""
    id: UUID4
    email: str
    name: str
    phone: Optional[str] = None
    location: Optional[str] = None
    photo: Optional[str] = None
    available_days: List[str] = Field(default_factory=list)
    created_at: datetime


class SessionToken(BaseModel):
    """Bearer session issued by the identity provider."""
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    expires_in: int  # seconds


class AuthResponse(BaseModel):
    message: str
    user: UserProfile
    session: Optional[SessionToken] = None
