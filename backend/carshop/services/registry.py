"""
Refresh token registry.

Holds the set of refresh tokens that may still be exchanged for a new token
pair. A refresh token is usable only while it is in the registry AND still
verifies with the token codec; the registry itself knows nothing about
signatures.
"""
import abc
import asyncio
import hashlib
import logging
from datetime import datetime, timezone
from typing import Optional, Set

import redis.asyncio as redis

from carshop.core.errors import TokenRevokedError
from carshop.core.security import TokenCodec

logger = logging.getLogger(__name__)


class RefreshTokenRegistry(abc.ABC):
    """Store of live refresh tokens, shared by every request in the process."""

    @abc.abstractmethod
    async def record(self, token: str) -> None:
        """Add a freshly issued refresh token."""

    @abc.abstractmethod
    async def is_valid(self, token: str) -> bool:
        """Return True if the token is currently registered."""

    @abc.abstractmethod
    async def rotate(self, old_token: str, new_token: str) -> None:
        """
        Replace old_token with new_token atomically.

        Raises:
            TokenRevokedError: old_token is not registered (already rotated,
                revoked, or never issued). new_token is not stored.
        """

    @abc.abstractmethod
    async def revoke(self, token: str) -> None:
        """Remove a token; removing an unknown token is a no-op."""

    async def close(self) -> None:
        pass


class InMemoryRefreshTokenRegistry(RefreshTokenRegistry):
    """
    Process-local registry.

    Every operation runs under one asyncio lock. Nothing survives a restart,
    so restarting the process logs every client out of its refresh session.
    """

    def __init__(self):
        self._tokens: Set[str] = set()
        self._lock = asyncio.Lock()

    async def record(self, token: str) -> None:
        async with self._lock:
            self._tokens.add(token)

    async def is_valid(self, token: str) -> bool:
        async with self._lock:
            return token in self._tokens

    async def rotate(self, old_token: str, new_token: str) -> None:
        async with self._lock:
            if old_token not in self._tokens:
                raise TokenRevokedError("Refresh token is not registered")
            self._tokens.discard(old_token)
            self._tokens.add(new_token)

    async def revoke(self, token: str) -> None:
        async with self._lock:
            self._tokens.discard(token)

    def __len__(self) -> int:
        return len(self._tokens)


class RedisRefreshTokenRegistry(RefreshTokenRegistry):
    """
    Redis-backed registry.

    Keys are SHA-256 digests of the token so raw tokens never sit in Redis.
    Each key expires together with the token it stands for. Rotation relies
    on DEL being atomic: of two concurrent rotations of the same token only
    one sees a deleted count of 1.
    """

    key_prefix = "refresh_token:"

    def __init__(self, client: redis.Redis):
        self.redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisRefreshTokenRegistry":
        return cls(redis.from_url(url))

    def _key(self, token: str) -> str:
        return self.key_prefix + hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def _ttl_seconds(token: str) -> Optional[int]:
        expires_at = TokenCodec.expires_at(token)
        if expires_at is None:
            return None
        return int((expires_at - datetime.now(timezone.utc)).total_seconds())

    async def _store(self, token: str) -> None:
        ttl = self._ttl_seconds(token)
        if ttl is None:
            await self.redis.set(self._key(token), 1)
        elif ttl > 0:
            await self.redis.set(self._key(token), 1, ex=ttl)
        else:
            logger.warning("Refusing to register an already expired refresh token")

    async def record(self, token: str) -> None:
        await self._store(token)

    async def is_valid(self, token: str) -> bool:
        return bool(await self.redis.exists(self._key(token)))

    async def rotate(self, old_token: str, new_token: str) -> None:
        deleted = await self.redis.delete(self._key(old_token))
        if deleted != 1:
            raise TokenRevokedError("Refresh token is not registered")
        await self._store(new_token)

    async def revoke(self, token: str) -> None:
        await self.redis.delete(self._key(token))

    async def close(self) -> None:
        await self.redis.aclose()


def create_registry(backend: str, redis_url: Optional[str] = None) -> RefreshTokenRegistry:
    """Build the registry selected by REFRESH_REGISTRY_BACKEND."""
    if backend == "redis":
        if not redis_url:
            raise ValueError("redis registry backend needs a REDIS_URL")
        logger.info("Refresh token registry: redis")
        return RedisRefreshTokenRegistry.from_url(redis_url)
    if backend == "memory":
        logger.info("Refresh token registry: in-memory (sessions do not survive a restart)")
        return InMemoryRefreshTokenRegistry()
    raise ValueError(f"Unknown refresh token registry backend: {backend}")
