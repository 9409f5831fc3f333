"""Redis client configuration and the distributed slot lock."""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import date
from uuid import UUID

import redis.asyncio as redis
import structlog
from redis.exceptions import LockError

from app.config import settings
from app.core.exceptions import ConflictException

logger = structlog.get_logger()

# Global Redis client instance
_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """
    Get or create Redis client instance.

    Returns:
        Redis client instance, or None when Redis is not configured
    """
    global _redis_client

    if not settings.redis_enabled:
        return None

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    client = get_redis_client()
    if client is None:
        return False
    try:
        await client.ping()
        return True
    except Exception:
        return False


async def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class SlotLockManager:
    """Redis-based lock serializing schedule mutations per tenant and day."""

    KEY_PREFIX = "slot-lock"

    def __init__(
        self,
        redis_client: redis.Redis,
        timeout: float = 10.0,
        blocking_timeout: float = 5.0,
    ):
        """Initialize lock manager with Redis client and lock timings."""
        self.redis = redis_client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    @classmethod
    def key(cls, tenant_id: UUID, day: date) -> str:
        """Generate lock key for a tenant's calendar day."""
        return f"{cls.KEY_PREFIX}:{tenant_id}:{day.isoformat()}"

    @asynccontextmanager
    async def hold(self, tenant_id: UUID, days: Iterable[date]) -> AsyncIterator[None]:
        """
        Hold the locks for every given day of a tenant.

        Keys are acquired in sorted order so two callers touching the same
        pair of days cannot deadlock.

        Raises:
            ConflictException: If a lock cannot be acquired in time
        """
        keys = sorted({self.key(tenant_id, day) for day in days})
        acquired = []
        try:
            for key in keys:
                lock = self.redis.lock(
                    key,
                    timeout=self.timeout,
                    blocking_timeout=self.blocking_timeout,
                )
                if not await lock.acquire():
                    logger.warning("slot_lock_timeout", key=key)
                    raise ConflictException(
                        "The schedule for this day is being modified. Please try again."
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                try:
                    await lock.release()
                except LockError as e:
                    logger.warning("slot_lock_release_failed", error=str(e))


def get_slot_lock_manager() -> SlotLockManager | None:
    """Build a slot lock manager when Redis is configured."""
    client = get_redis_client()
    if client is None:
        return None
    return SlotLockManager(
        client,
        timeout=settings.slot_lock_timeout_seconds,
        blocking_timeout=settings.slot_lock_wait_seconds,
    )
