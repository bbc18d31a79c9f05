"""Per-distribution locks — keep two sessions off the same distribution.

The reconciliation coordinator's busy flag only guards one session.  When
several operators may work the same distributions, enable
DISTRIBUTION_LOCKS_ENABLED so reconcile/complete calls hold a Redis lock
keyed on the distribution id for their duration.

Usage:
    async with lock_provider.hold(distribution_id):
        ...

The lock is released on every exit path.  If it cannot be acquired within
the wait time, DistributionLockedError is raised and nothing runs.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import LockError

from growerpay.config import settings
from growerpay.middleware.exceptions import DistributionLockedError

logger = logging.getLogger(__name__)

LOCK_KEY_PREFIX = "growerpay:distribution-lock:"

# Global Redis connection pool
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create Redis client connection."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close Redis connection (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def lock_key(distribution_id: str) -> str:
    return f"{LOCK_KEY_PREFIX}{distribution_id}"


class DistributionLockProvider(Protocol):
    def hold(self, distribution_id: str) -> AsyncContextManager[None]: ...


class NullDistributionLock:
    """No cross-session locking (single-operator workflow)."""

    @asynccontextmanager
    async def hold(self, distribution_id: str) -> AsyncIterator[None]:
        yield


class RedisDistributionLock:
    """Distribution lock backed by a redis-py asyncio Lock."""

    def __init__(
        self,
        client: redis.Redis,
        timeout: float = settings.distribution_lock_timeout_seconds,
        blocking_timeout: float = settings.distribution_lock_wait_seconds,
    ):
        self._client = client
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def hold(self, distribution_id: str) -> AsyncIterator[None]:
        lock = self._client.lock(
            lock_key(distribution_id),
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning("Distribution %s is locked by another session", distribution_id)
            raise DistributionLockedError(distribution_id)

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Lock expired while we held it; another session may own it now
                logger.warning(
                    "Lock on distribution %s expired before release", distribution_id
                )


async def get_distribution_lock() -> DistributionLockProvider:
    """Lock provider configured by settings (FastAPI dependency)."""
    if not settings.distribution_locks_enabled:
        return NullDistributionLock()
    return RedisDistributionLock(await get_redis())
