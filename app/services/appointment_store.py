"""Tenant-scoped persistence for appointments."""

from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import and_, exists, func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Join, Select
from sqlalchemy.sql.elements import ColumnElement

from app.models.appointments import appointment_day_locks, appointments
from app.models.patients import patients
from app.models.payments import payments
from app.schemas.appointments import INACTIVE_STATUSES, AppointmentFilters, AppointmentStatus

# Dialect-specific INSERT constructs that support ON CONFLICT DO NOTHING
_UPSERT_FACTORIES: dict[str, Callable[..., Any]] = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class AppointmentStore:
    """
    Appointment access bound to a single tenant.

    Every statement built here filters on the tenant the store was created
    for and hides soft-deleted rows, so no caller can read or write another
    tenant's appointments through it.
    """

    def __init__(self, db: AsyncSession, tenant_id: UUID):
        """Initialize store with database session and owning tenant."""
        if tenant_id is None:
            raise ValueError("tenant_id is required")
        self.db = db
        self.tenant_id = tenant_id

    def _scope(self, *conditions: ColumnElement[bool]) -> ColumnElement[bool]:
        """Combine conditions with the tenant and soft-delete filters."""
        return and_(
            appointments.c.tenant_id == self.tenant_id,
            appointments.c.deleted_at.is_(None),
            *conditions,
        )

    @staticmethod
    def _with_patients() -> Join:
        """Join appointments to the owning patient row."""
        return appointments.outerjoin(
            patients,
            and_(
                patients.c.id == appointments.c.patient_id,
                patients.c.tenant_id == appointments.c.tenant_id,
            ),
        )

    def _select(self) -> Select:
        """Select appointment rows with the derived predecessor id and patient identity."""
        predecessor = appointments.alias("predecessor")
        rescheduled_from_id = (
            select(predecessor.c.id)
            .where(
                predecessor.c.rescheduled_to_id == appointments.c.id,
                predecessor.c.tenant_id == appointments.c.tenant_id,
                predecessor.c.deleted_at.is_(None),
            )
            .limit(1)
            .scalar_subquery()
            .label("rescheduled_from_id")
        )
        return select(
            appointments,
            rescheduled_from_id,
            patients.c.full_name.label("patient_full_name"),
            patients.c.patient_code.label("patient_code"),
        ).select_from(self._with_patients())

    async def get(self, appointment_id: UUID) -> dict | None:
        """Get a visible appointment by ID."""
        stmt = self._select().where(self._scope(appointments.c.id == appointment_id))
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None

    async def lock(self, appointment_id: UUID) -> bool:
        """
        Take a row lock on an appointment for the rest of the transaction.

        Returns:
            True if the appointment exists and is visible
        """
        stmt = (
            select(appointments.c.id)
            .where(self._scope(appointments.c.id == appointment_id))
            .with_for_update()
        )
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def lock_day(self, day: date) -> None:
        """
        Serialize schedule mutations for one calendar day of this tenant.

        The lock row is created on first use; concurrent inserts of the same
        key wait on each other, and the ``FOR UPDATE`` read holds the row
        until the surrounding transaction ends.
        """
        dialect = self.db.get_bind().dialect.name
        upsert = _UPSERT_FACTORIES.get(dialect)
        if upsert is None:
            raise RuntimeError(f"Unsupported database dialect for day locks: {dialect}")

        await self.db.execute(
            upsert(appointment_day_locks)
            .values(tenant_id=self.tenant_id, day=day)
            .on_conflict_do_nothing(index_elements=["tenant_id", "day"])
        )
        await self.db.execute(
            select(appointment_day_locks.c.day)
            .where(
                appointment_day_locks.c.tenant_id == self.tenant_id,
                appointment_day_locks.c.day == day,
            )
            .with_for_update()
        )

    async def list_active_on_day(
        self,
        day: date,
        exclude_id: UUID | None = None,
    ) -> list[dict]:
        """List appointments occupying their slot on a day, earliest first."""
        conditions = [
            appointments.c.day == day,
            appointments.c.status.notin_([status.value for status in INACTIVE_STATUSES]),
        ]
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)

        stmt = (
            self._select()
            .where(self._scope(*conditions))
            .order_by(appointments.c.start_time.asc())
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def find_predecessor(self, appointment_id: UUID) -> dict | None:
        """Get the appointment whose reschedule created the given one."""
        stmt = self._select().where(self._scope(appointments.c.rescheduled_to_id == appointment_id))
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None

    async def insert(self, values: dict[str, Any]) -> UUID:
        """Insert an appointment for this tenant and return its ID."""
        appointment_id = values.get("id") or uuid4()
        await self.db.execute(
            insert(appointments).values(
                **{**values, "id": appointment_id, "tenant_id": self.tenant_id}
            )
        )
        return appointment_id

    async def update(self, appointment_id: UUID, values: dict[str, Any]) -> None:
        """Apply column values to a visible appointment."""
        stmt = (
            update(appointments)
            .where(self._scope(appointments.c.id == appointment_id))
            .values(**values, updated_at=datetime.now(UTC))
        )
        await self.db.execute(stmt)

    async def soft_delete(self, appointment_id: UUID, actor_id: UUID) -> None:
        """Mark an appointment deleted without removing the row."""
        now = datetime.now(UTC)
        stmt = (
            update(appointments)
            .where(self._scope(appointments.c.id == appointment_id))
            .values(deleted_at=now, deleted_by_id=actor_id, updated_at=now)
        )
        await self.db.execute(stmt)

    async def search(self, filters: AppointmentFilters) -> tuple[int, list[dict]]:
        """
        List appointments with filtering and pagination.

        Returns:
            Total matching count and the requested page, newest day and time first
        """
        conditions: list[ColumnElement[bool]] = []

        if filters.from_day:
            conditions.append(appointments.c.day >= filters.from_day)

        if filters.to_day:
            conditions.append(appointments.c.day <= filters.to_day)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.modality:
            conditions.append(appointments.c.modality == filters.modality.value)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.search:
            conditions.append(patients.c.full_name.icontains(filters.search, autoescape=True))

        where = self._scope(*conditions)

        # Count total
        count_stmt = (
            select(func.count())
            .select_from(self._with_patients())
            .where(where)
        )
        total = (await self.db.execute(count_stmt)).scalar() or 0

        # Get paginated results
        offset = (filters.page - 1) * filters.page_size
        stmt = (
            self._select()
            .where(where)
            .order_by(appointments.c.day.desc(), appointments.c.start_time.desc())
            .limit(filters.page_size)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return total, [dict(row) for row in result.mappings().all()]

    async def list_billable(self, patient_id: UUID | None, limit: int) -> list[dict]:
        """List completed or confirmed appointments that have no payment yet."""
        has_payment = exists().where(
            payments.c.appointment_id == appointments.c.id,
            payments.c.tenant_id == self.tenant_id,
        )
        conditions = [
            appointments.c.status.in_(
                [AppointmentStatus.COMPLETED.value, AppointmentStatus.CONFIRMED.value]
            ),
            ~has_payment,
        ]
        if patient_id:
            conditions.append(appointments.c.patient_id == patient_id)

        stmt = (
            self._select()
            .where(self._scope(*conditions))
            .order_by(appointments.c.day.desc(), appointments.c.start_time.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]
