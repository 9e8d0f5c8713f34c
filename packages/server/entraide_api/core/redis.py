"""Redis connection management and the session revocation list."""

from __future__ import annotations

import time
from typing import Protocol

import redis.asyncio as redis

from entraide_api.core.config import get_settings

settings = get_settings()

_redis_pool: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Get or create the Redis connection."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.close()
        _redis_pool = None


class RevocationList(Protocol):
    async def revoke(self, jti: str, ttl_seconds: int) -> None:
        ...

    async def is_revoked(self, jti: str) -> bool:
        ...


class RedisRevocationList:
    """Signed-out token ids, kept only as long as the token could still be valid."""

    key_prefix = "jwt:revoked:"

    async def revoke(self, jti: str, ttl_seconds: int) -> None:
        conn = await get_redis()
        await conn.setex(f"{self.key_prefix}{jti}", max(ttl_seconds, 1), "1")

    async def is_revoked(self, jti: str) -> bool:
        conn = await get_redis()
        return await conn.exists(f"{self.key_prefix}{jti}") > 0


class InMemoryRevocationList:
    """Process-local double for development and tests."""

    def __init__(self) -> None:
        self._expiry: dict[str, float] = {}

    async def revoke(self, jti: str, ttl_seconds: int) -> None:
        now = time.monotonic()
        for expired in [k for k, expires in self._expiry.items() if expires < now]:
            del self._expiry[expired]
        self._expiry[jti] = now + max(ttl_seconds, 1)

    async def is_revoked(self, jti: str) -> bool:
        expires = self._expiry.get(jti)
        if expires is None:
            return False
        if expires < time.monotonic():
            del self._expiry[jti]
            return False
        return True
