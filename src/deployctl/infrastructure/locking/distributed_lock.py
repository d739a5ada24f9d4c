"""Per-service lock implementations."""

from __future__ import annotations

import time
import uuid

import redis.asyncio
import structlog

from deployctl.config import LockBackend, RedisSettings
from deployctl.domain.ports.services import DistributedLock


logger = structlog.get_logger(__name__)


class InProcessDistributedLock(DistributedLock):
    """Lock table held in process memory.

    Safe for a single worker process only. Acquire/release never await, so
    they are atomic with respect to other tasks on the same event loop.
    """

    def __init__(self) -> None:
        self._locks: dict[str, tuple[str, float]] = {}

    def _live_holder(self, resource_id: str) -> str | None:
        entry = self._locks.get(resource_id)
        if entry is None:
            return None
        token, expires_at = entry
        if expires_at <= time.monotonic():
            del self._locks[resource_id]
            logger.warning("lock_expired", resource_id=resource_id)
            return None
        return token

    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> str | None:
        if self._live_holder(resource_id) is not None:
            logger.debug("lock_not_acquired", resource_id=resource_id)
            return None
        token = str(uuid.uuid4())
        self._locks[resource_id] = (token, time.monotonic() + ttl_seconds)
        logger.debug("lock_acquired", resource_id=resource_id, ttl=ttl_seconds)
        return token

    async def release(self, resource_id: str, token: str) -> bool:
        if self._live_holder(resource_id) != token:
            logger.warning("lock_lost_before_release", resource_id=resource_id)
            return False
        del self._locks[resource_id]
        logger.debug("lock_released", resource_id=resource_id)
        return True

    async def extend(self, resource_id: str, token: str, ttl_seconds: int = 30) -> bool:
        if self._live_holder(resource_id) != token:
            return False
        self._locks[resource_id] = (token, time.monotonic() + ttl_seconds)
        return True

    async def is_locked(self, resource_id: str) -> bool:
        return self._live_holder(resource_id) is not None


_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_EXTEND_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""


class RedisDistributedLock(DistributedLock):
    """Lock shared across controller processes, using SET NX with a TTL.

    The key's value is the owner token returned by ``acquire``; release and
    extend compare it atomically inside a Lua script.
    """

    def __init__(self, client: redis.asyncio.Redis, key_prefix: str = "deployctl:lock") -> None:
        self._client = client
        self._key_prefix = key_prefix

    def _key(self, resource_id: str) -> str:
        return f"{self._key_prefix}:{resource_id}"

    async def acquire(self, resource_id: str, ttl_seconds: int = 30) -> str | None:
        token = str(uuid.uuid4())
        acquired = await self._client.set(self._key(resource_id), token, nx=True, ex=ttl_seconds)
        if acquired:
            logger.debug("lock_acquired", resource_id=resource_id, ttl=ttl_seconds)
            return token

        logger.debug("lock_not_acquired", resource_id=resource_id)
        return None

    async def release(self, resource_id: str, token: str) -> bool:
        result = await self._client.eval(_RELEASE_SCRIPT, 1, self._key(resource_id), token)
        if result:
            logger.debug("lock_released", resource_id=resource_id)
            return True
        logger.warning("lock_lost_before_release", resource_id=resource_id)
        return False

    async def extend(self, resource_id: str, token: str, ttl_seconds: int = 30) -> bool:
        result = await self._client.eval(
            _EXTEND_SCRIPT, 1, self._key(resource_id), token, str(ttl_seconds)
        )
        return bool(result)

    async def is_locked(self, resource_id: str) -> bool:
        return bool(await self._client.exists(self._key(resource_id)))

def create_redis_client(settings: RedisSettings) -> redis.asyncio.Redis:
    """Factory function to create a Redis client."""
    return redis.asyncio.Redis.from_url(
        settings.url,
        decode_responses=False,
        socket_timeout=5.0,
        socket_connect_timeout=5.0,
        retry_on_timeout=True,
    )


def create_lock(settings: RedisSettings) -> DistributedLock:
    """Build the lock backend selected in settings."""
    if settings.lock_backend == LockBackend.REDIS:
        return RedisDistributedLock(create_redis_client(settings))
    return InProcessDistributedLock()
