"""
User service: registration, sessions, and self-service profile edits.

Registration spans two independent stores (identity provider, profile
table); a failed profile write is compensated by deleting the identity.
"""

from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

import structlog

from entraide_api.core.auth import IdentityProvider
from entraide_api.core.errors import AppError, NotFound, Unauthorized, UpstreamFailure, ValidationFailed
from entraide_api.core.storage import BlobStore
from entraide_api.models.user import User
from entraide_api.services.photos import PhotoUpload, StoredPhoto, discard_photo, store_photo
from entraide_api.services.repository import Repository, StoreConstraintError
from entraide_api.services.validation import (
    no_updates,
    normalize_fields,
    prepare_fields,
    sanitize_update,
    translate_fields,
    validate_registration,
)
from entraide_api.services.views import user_profile
from entraide_shared.schemas.users import AuthResponse, UserProfile

log = structlog.get_logger()

USER_PHOTO_PREFIX = "user-photos"


async def get_profile_or_404(repo: Repository, user_id: uuid.UUID) -> User:
    user = await repo.get(User, user_id)
    if user is None:
        raise NotFound("user", user_id, "User profile not found")
    return user


async def register(repo: Repository, provider: IdentityProvider, payload: Mapping[str, Any]) -> AuthResponse:
    email = payload.get("email")
    password = payload.get("password")
    fields, _ = translate_fields("user", payload)
    fields = normalize_fields("user", fields)
    violations = validate_registration(email, password, fields)
    if violations:
        raise ValidationFailed(violations)

    email = email.strip().lower()
    user_id = await provider.create_identity(email, password)

    try:
        user = await repo.insert(User(id=user_id, email=email, **fields))
        await repo.commit()
    except (StoreConstraintError, UpstreamFailure) as exc:
        log.error("user.profile_creation_failed", user_id=str(user_id), error=str(exc))
        try:
            await provider.delete_identity(user_id)
        except Exception as cleanup_exc:
            log.error("identity.compensation_failed", user_id=str(user_id), error=str(cleanup_exc))
        raise UpstreamFailure("profile_creation", "Failed to create user profile") from exc

    log.info("user.registered", user_id=str(user_id))

    try:
        session = await provider.sign_in(email, password)
    except AppError as exc:
        log.warning("auth.auto_login_failed", user_id=str(user_id), reason=exc.code)
        return AuthResponse(
            message="User registered successfully, but auto-login failed. Please log in.",
            user=user_profile(user),
            session=None,
        )
    return AuthResponse(message="User registered successfully", user=user_profile(user), session=session)


async def login(repo: Repository, provider: IdentityProvider, email: str, password: str) -> AuthResponse:
    try:
        session = await provider.sign_in(email, password)
    except AppError as exc:
        log.info("auth.login_failure", reason=exc.code)
        raise
    user_id = await provider.validate_token(session.access_token)
    user = await get_profile_or_404(repo, user_id)
    log.info("auth.login_success", user_id=str(user_id))
    return AuthResponse(message="Login successful", user=user_profile(user), session=session)


async def logout(provider: IdentityProvider, token: str, user_id: uuid.UUID) -> None:
    await provider.sign_out(token)
    log.info("auth.logout", user_id=str(user_id))


async def me(repo: Repository, user_id: uuid.UUID) -> UserProfile:
    return user_profile(await get_profile_or_404(repo, user_id))


def _require_self(actor_id: uuid.UUID, user_id: uuid.UUID) -> None:
    if actor_id != user_id:
        raise Unauthorized("update", "You can only update your own profile")


async def update_profile(
    repo: Repository, actor_id: uuid.UUID, user_id: uuid.UUID, payload: Mapping[str, Any]
) -> UserProfile:
    _require_self(actor_id, user_id)
    await get_profile_or_404(repo, user_id)

    fields = sanitize_update("user", payload)
    if not fields:
        raise no_updates()
    fields = prepare_fields("user", fields, form=False, partial=True)

    updated = await repo.update_owned(User, user_id, "id", actor_id, fields)
    if updated == 0:
        raise NotFound("user", user_id, "User profile not found")
    await repo.commit()

    log.info("user.updated", user_id=str(user_id), fields=sorted(fields))
    return user_profile(await repo.get(User, user_id, fresh=True))


async def update_photo(
    repo: Repository,
    blobs: BlobStore,
    actor_id: uuid.UUID,
    user_id: uuid.UUID,
    photo: Optional[PhotoUpload],
    *,
    max_photo_bytes: int,
) -> UserProfile:
    _require_self(actor_id, user_id)
    await get_profile_or_404(repo, user_id)
    if photo is None:
        raise ValidationFailed(["A photo file is required"], message="No photo provided")

    stored: Optional[StoredPhoto] = None
    try:
        stored = await store_photo(blobs, photo, USER_PHOTO_PREFIX, max_photo_bytes)
        updated = await repo.update_owned(User, user_id, "id", actor_id, {"photo": stored.url})
        if updated == 0:
            raise NotFound("user", user_id, "User profile not found")
        await repo.commit()
    except Exception:
        await discard_photo(blobs, stored)
        raise

    log.info("user.photo_updated", user_id=str(user_id), key=stored.key)
    return user_profile(await repo.get(User, user_id, fresh=True))
