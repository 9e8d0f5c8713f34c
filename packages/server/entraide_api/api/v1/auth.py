"""
Authentication endpoints.

- Email/password registration (identity + profile, then auto sign-in)
- Login returning a bearer session
- Current user lookup and logout (token revocation)
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from entraide_api.api.v1.deps import RequestPayload, get_repository, read_payload
from entraide_api.core.auth import (
    AuthenticatedUser,
    IdentityProvider,
    get_current_user,
    get_identity_provider,
)
from entraide_api.services import users as user_service
from entraide_api.services.repository import Repository
from entraide_shared.schemas.users import AuthResponse, LoginRequest

log = structlog.get_logger()
router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    payload: RequestPayload = Depends(read_payload),
    repo: Repository = Depends(get_repository),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Register with email/password; the response carries a session when auto sign-in works."""
    return await user_service.register(repo, provider, payload.fields)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    repo: Repository = Depends(get_repository),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    return await user_service.login(repo, provider, body.email, body.password)


@router.get("/me")
async def me(
    auth: AuthenticatedUser = Depends(get_current_user),
    repo: Repository = Depends(get_repository),
):
    user = await user_service.me(repo, auth.user_id)
    return {"message": "User profile retrieved successfully", "user": user}


@router.post("/logout")
async def logout(
    auth: AuthenticatedUser = Depends(get_current_user),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    await user_service.logout(provider, auth.token, auth.user_id)
    return {"message": "Logout successful"}
