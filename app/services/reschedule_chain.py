"""Reschedule chain links between an appointment and its successor."""

from uuid import UUID

from app.core.time_intervals import TimeInterval
from app.schemas.appointments import AppointmentStatus
from app.services.appointment_store import AppointmentStore


class RescheduleChainManager:
    """Creates and breaks ``rescheduled_to_id`` links."""

    def __init__(self, store: AppointmentStore):
        """Initialize manager with a tenant-scoped appointment store."""
        self.store = store

    async def reschedule(
        self,
        original: dict,
        target: TimeInterval,
        notes: str | None = None,
    ) -> UUID:
        """
        Move an appointment into a new, linked booking.

        The successor clones the original's patient, modality, location and
        notes and starts ``confirmed``. The original becomes ``rescheduled``
        and points at the successor; notes sent with the request replace the
        original's notes only.

        Must run inside the caller's transaction.

        Returns:
            ID of the successor appointment
        """
        successor_id = await self.store.insert(
            {
                "patient_id": original["patient_id"],
                "day": target.day,
                "start_time": target.start,
                "end_time": target.end,
                "modality": original["modality"],
                "location": original["location"],
                "notes": original["notes"],
                "status": AppointmentStatus.CONFIRMED.value,
            }
        )
        await self.store.update(
            original["id"],
            {
                "status": AppointmentStatus.RESCHEDULED.value,
                "rescheduled_to_id": successor_id,
                "notes": notes or original["notes"],
            },
        )
        return successor_id

    async def predecessor_of(self, appointment_id: UUID) -> dict | None:
        """Get the appointment rescheduled into the given one, if any."""
        return await self.store.find_predecessor(appointment_id)

    async def restore(self, predecessor: dict) -> None:
        """Break the link from a predecessor and make it ``confirmed`` again."""
        await self.store.update(
            predecessor["id"],
            {
                "status": AppointmentStatus.CONFIRMED.value,
                "rescheduled_to_id": None,
            },
        )
