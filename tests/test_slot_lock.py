"""Tests for the Redis slot lock."""

from datetime import date
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from redis.exceptions import LockError

from app.core.exceptions import ConflictException
from app.core.redis_client import SlotLockManager


def make_redis(acquired: bool = True) -> tuple[MagicMock, list[MagicMock]]:
    """Create a Redis client mock whose locks record their keys."""
    locks: list[MagicMock] = []

    def lock(key, timeout=None, blocking_timeout=None):
        mock_lock = MagicMock()
        mock_lock.key = key
        mock_lock.acquire = AsyncMock(return_value=acquired)
        mock_lock.release = AsyncMock()
        locks.append(mock_lock)
        return mock_lock

    redis = MagicMock()
    redis.lock = MagicMock(side_effect=lock)
    return redis, locks


def test_key_format() -> None:
    """Test lock keys are scoped by tenant and day."""
    tenant_id = uuid4()
    assert SlotLockManager.key(tenant_id, date(2026, 3, 2)) == f"slot-lock:{tenant_id}:2026-03-02"


@pytest.mark.asyncio
async def test_hold_acquires_sorted_and_releases_in_reverse() -> None:
    """Test days are locked in a stable order and released afterwards."""
    redis, locks = make_redis()
    manager = SlotLockManager(redis, timeout=3, blocking_timeout=1)
    tenant_id = uuid4()

    async with manager.hold(tenant_id, [date(2026, 3, 5), date(2026, 3, 2), date(2026, 3, 5)]):
        assert [lock.key for lock in locks] == [
            SlotLockManager.key(tenant_id, date(2026, 3, 2)),
            SlotLockManager.key(tenant_id, date(2026, 3, 5)),
        ]
        for lock in locks:
            lock.release.assert_not_awaited()

    redis.lock.assert_any_call(locks[0].key, timeout=3, blocking_timeout=1)
    for lock in locks:
        lock.release.assert_awaited_once()


@pytest.mark.asyncio
async def test_hold_raises_conflict_when_busy() -> None:
    """Test a lock that cannot be taken in time reports a conflict."""
    redis, locks = make_redis(acquired=False)
    manager = SlotLockManager(redis)

    with pytest.raises(ConflictException):
        async with manager.hold(uuid4(), [date(2026, 3, 2)]):
            pytest.fail("body must not run without the lock")

    locks[0].release.assert_not_awaited()


@pytest.mark.asyncio
async def test_hold_releases_when_body_fails() -> None:
    """Test locks are released even if the guarded block raises."""
    redis, locks = make_redis()
    manager = SlotLockManager(redis)

    with pytest.raises(RuntimeError):
        async with manager.hold(uuid4(), [date(2026, 3, 2)]):
            raise RuntimeError("boom")

    locks[0].release.assert_awaited_once()


@pytest.mark.asyncio
async def test_expired_lock_release_is_tolerated() -> None:
    """Test releasing a lock that already expired does not fail the request."""
    redis, locks = make_redis()
    manager = SlotLockManager(redis)

    async with manager.hold(uuid4(), [date(2026, 3, 2)]):
        locks[0].release.side_effect = LockError("expired")


@pytest.mark.asyncio
async def test_service_holds_lock_for_booking_day(
    db_session,
    tenant_id,
    staff_user_id,
    patient,
) -> None:
    """Test bookings run under the slot lock of their day."""
    from datetime import time

    from app.schemas.appointments import AppointmentCreate
    from app.services.appointment_service import AppointmentService

    redis, locks = make_redis()
    service = AppointmentService(
        db_session,
        tenant_id=tenant_id,
        actor_id=staff_user_id,
        slot_lock=SlotLockManager(redis),
    )

    await service.create_appointment(
        AppointmentCreate(
            patient_id=patient,
            day=date(2026, 3, 2),
            start_time=time(9, 0),
            end_time=time(10, 0),
        )
    )

    assert [lock.key for lock in locks] == [SlotLockManager.key(tenant_id, date(2026, 3, 2))]
    locks[0].release.assert_awaited_once()
