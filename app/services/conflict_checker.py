"""Slot conflict detection."""

from dataclasses import dataclass
from uuid import UUID

from app.core.time_intervals import TimeInterval
from app.services.appointment_store import AppointmentStore


@dataclass(frozen=True)
class SlotConflict:
    """An active appointment occupying part of a requested slot."""

    appointment_id: UUID
    patient_id: UUID
    patient_name: str | None
    interval: TimeInterval


class ConflictChecker:
    """Checks candidate slots against a tenant's active appointments."""

    def __init__(self, store: AppointmentStore):
        """Initialize checker with a tenant-scoped appointment store."""
        self.store = store

    async def find_conflict(
        self,
        candidate: TimeInterval,
        exclude_id: UUID | None = None,
    ) -> SlotConflict | None:
        """
        Find the earliest active appointment overlapping a candidate slot.

        Args:
            candidate: Requested slot
            exclude_id: Appointment to ignore, used when moving it in place

        Returns:
            The conflicting appointment, or None if the slot is free
        """
        for row in await self.store.list_active_on_day(candidate.day, exclude_id=exclude_id):
            existing = TimeInterval(row["day"], row["start_time"], row["end_time"])
            if candidate.overlaps(existing):
                return SlotConflict(
                    appointment_id=row["id"],
                    patient_id=row["patient_id"],
                    patient_name=row["patient_full_name"],
                    interval=existing,
                )
        return None
