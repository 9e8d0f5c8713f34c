"""
Authentication for Entraide.

Supports:
- The identity provider seam (credentials, bearer sessions, sign-out)
- A local provider: bcrypt credentials table, HS256 JWTs, revocation list
- The bearer gate that classifies every rejection
- FastAPI dependencies yielding the authenticated user id
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

import bcrypt
import jwt
import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from entraide_api.core.config import Settings
from entraide_api.core.errors import (
    AppError,
    AuthFailure,
    AuthFailureKind,
    Conflict,
    ConflictReason,
    InternalAuthError,
    UpstreamFailure,
)
from entraide_api.core.redis import RevocationList
from entraide_api.models.identity import Identity
from entraide_shared.schemas.users import SessionToken

log = structlog.get_logger()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

# Literal values some clients send when they have no token
PLACEHOLDER_TOKENS = frozenset({"undefined", "null"})

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(user_id: uuid.UUID, settings: Settings, *, expires_delta: timedelta | None = None) -> tuple[str, str, datetime]:
    """Create a signed JWT. Returns (token, jti, expires_at)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti, exp


def decode_jwt(token: str, settings: Settings) -> dict:
    """Decode and verify a JWT, classifying failures as AuthFailure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthFailure(AuthFailureKind.EXPIRED_TOKEN)
    except jwt.InvalidSignatureError:
        raise AuthFailure(AuthFailureKind.INVALID_TOKEN)
    except jwt.DecodeError:
        raise AuthFailure(AuthFailureKind.INVALID_FORMAT)
    except jwt.InvalidTokenError:
        raise AuthFailure(AuthFailureKind.INVALID_TOKEN)


# ---------------------------------------------------------------------------
# Identity provider
# ---------------------------------------------------------------------------

class IdentityProvider(Protocol):
    async def create_identity(self, email: str, password: str) -> uuid.UUID:
        ...

    async def delete_identity(self, user_id: uuid.UUID) -> None:
        ...

    async def sign_in(self, email: str, password: str) -> SessionToken:
        ...

    async def validate_token(self, token: str) -> uuid.UUID:
        ...

    async def sign_out(self, token: str) -> None:
        ...


class LocalIdentityProvider:
    """
    Credentials in the ``identities`` table, sessions as signed JWTs.

    Uses its own sessions, so identity writes commit independently of the
    caller's profile transaction.
    """

    def __init__(self, session_factory: sessionmaker, settings: Settings, revocations: RevocationList):
        self.session_factory = session_factory
        self.settings = settings
        self.revocations = revocations

    async def create_identity(self, email: str, password: str) -> uuid.UUID:
        identity = Identity(
            email=email.strip().lower(),
            password_hash=hash_password(password, self.settings.bcrypt_rounds),
        )
        async with self.session_factory() as session:
            session.add(identity)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise Conflict(ConflictReason.EMAIL_ALREADY_EXISTS, "Email already registered")
            except SQLAlchemyError as exc:
                await session.rollback()
                log.error("identity.store_failure", operation="identity_creation", error=str(exc))
                raise UpstreamFailure("identity_creation", "Failed to create user", cause=str(exc)) from exc
        log.info("identity.created", user_id=str(identity.id))
        return identity.id

    async def delete_identity(self, user_id: uuid.UUID) -> None:
        async with self.session_factory() as session:
            await session.execute(delete(Identity).where(Identity.id == user_id))
            await session.commit()
        log.info("identity.deleted", user_id=str(user_id))

    async def sign_in(self, email: str, password: str) -> SessionToken:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Identity).where(Identity.email == email.strip().lower())
            )
            identity = result.scalar_one_or_none()

        if identity is None or not verify_password(password, identity.password_hash):
            raise AuthFailure(AuthFailureKind.INVALID_CREDENTIALS)

        token, _, expires_at = create_jwt(identity.id, self.settings)
        return SessionToken(
            access_token=token,
            expires_at=expires_at,
            expires_in=self.settings.jwt_expire_minutes * 60,
        )

    async def validate_token(self, token: str) -> uuid.UUID:
        payload = decode_jwt(token, self.settings)

        try:
            user_id = uuid.UUID(str(payload["sub"]))
        except (KeyError, ValueError):
            raise AuthFailure(AuthFailureKind.INVALID_TOKEN)

        jti = payload.get("jti")
        if not jti or await self.revocations.is_revoked(jti):
            raise AuthFailure(AuthFailureKind.INVALID_TOKEN)

        async with self.session_factory() as session:
            identity = await session.get(Identity, user_id)
        if identity is None:
            raise AuthFailure(AuthFailureKind.USER_NOT_FOUND)
        return user_id

    async def sign_out(self, token: str) -> None:
        """Revoke the token for the rest of its lifetime."""
        payload = decode_jwt(token, self.settings)
        jti = payload.get("jti")
        if not jti:
            return
        remaining = int(payload["exp"] - datetime.now(timezone.utc).timestamp())
        await self.revocations.revoke(jti, remaining)
        log.info("identity.signed_out", user_id=payload.get("sub"))


# ---------------------------------------------------------------------------
# Bearer gate
# ---------------------------------------------------------------------------

class AuthenticatedUser:
    """The caller's identity plus the bearer token it was derived from."""

    def __init__(self, user_id: uuid.UUID, token: str):
        self.user_id = user_id
        self.token = token


def extract_bearer(header: Optional[str]) -> str:
    if header is None or header == "":
        raise AuthFailure(AuthFailureKind.MISSING_HEADER)
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise AuthFailure(AuthFailureKind.MALFORMED_HEADER)
    token = parts[1].strip()
    if not token:
        raise AuthFailure(AuthFailureKind.EMPTY_TOKEN)
    if token in PLACEHOLDER_TOKENS:
        raise AuthFailure(AuthFailureKind.INVALID_TOKEN)
    return token


async def authenticate_header(header: Optional[str], provider: IdentityProvider) -> AuthenticatedUser:
    """Resolve an ``Authorization`` header to a user, or raise a classified failure."""
    token = extract_bearer(header)
    try:
        user_id = await provider.validate_token(token)
    except AppError:
        raise
    except Exception as exc:
        log.error("auth.internal_error", error=str(exc), exc_info=True)
        raise InternalAuthError() from exc
    return AuthenticatedUser(user_id=user_id, token=token)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


async def get_current_user(
    authorization: Optional[str] = Depends(api_key_header),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> AuthenticatedUser:
    """Main authentication dependency for mutating endpoints."""
    try:
        auth = await authenticate_header(authorization, provider)
    except AuthFailure as exc:
        log.info("auth.rejected", reason=exc.code)
        raise
    structlog.contextvars.bind_contextvars(user_id=str(auth.user_id))
    return auth
