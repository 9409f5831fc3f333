"""Patient directory lookups used by the scheduling engine."""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.patients import patients


@dataclass(frozen=True)
class PatientRecord:
    """Patient identity as seen by the scheduling engine."""

    id: UUID
    full_name: str
    patient_code: str | None
    first_appointment_date: date | None


class PatientDirectory(Protocol):
    """Resolves patients and records their first appointment."""

    async def resolve_patient(self, tenant_id: UUID, patient_id: UUID) -> PatientRecord | None:
        """Get an active patient of the tenant."""
        ...

    async def record_first_appointment(self, patient_id: UUID, day: date) -> None:
        """Record the day of a patient's first appointment if none is recorded yet."""
        ...


class SqlPatientDirectory:
    """Patient directory backed by the ``patients`` table."""

    def __init__(self, db: AsyncSession):
        """Initialize directory with database session."""
        self.db = db

    async def resolve_patient(self, tenant_id: UUID, patient_id: UUID) -> PatientRecord | None:
        """Get an active, non-deleted patient of the tenant."""
        stmt = select(patients).where(
            patients.c.id == patient_id,
            patients.c.tenant_id == tenant_id,
            patients.c.is_active.is_(True),
            patients.c.deleted_at.is_(None),
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        if not row:
            return None
        return PatientRecord(
            id=row["id"],
            full_name=row["full_name"],
            patient_code=row["patient_code"],
            first_appointment_date=row["first_appointment_date"],
        )

    async def record_first_appointment(self, patient_id: UUID, day: date) -> None:
        """
        Record the day of a patient's first appointment.

        The update only matches while the date is still null, so a value
        recorded once is never overwritten, even by a concurrent booking.
        """
        stmt = (
            update(patients)
            .where(
                patients.c.id == patient_id,
                patients.c.first_appointment_date.is_(None),
            )
            .values(first_appointment_date=day, updated_at=datetime.now(UTC))
        )
        await self.db.execute(stmt)
