"""Appointment service for scheduling business logic."""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager, nullcontext
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BadRequestException,
    GuardedDeletionException,
    InvalidTransitionException,
    NotFoundException,
    SlotConflictException,
    ValidationException,
)
from app.core.redis_client import SlotLockManager
from app.core.time_intervals import TimeInterval
from app.models.appointments import appointments
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentDetailResponse,
    AppointmentFilters,
    AppointmentLink,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
    DeleteAppointmentResponse,
    PatientSummary,
)
from app.schemas.audit import AuditAction, AuditEntity
from app.services import appointment_lifecycle as lifecycle
from app.services.appointment_store import AppointmentStore
from app.services.audit_service import AuditSink, SqlAuditSink
from app.services.billing_ledger import BillingLedger, SqlBillingLedger
from app.services.conflict_checker import ConflictChecker
from app.services.deletion_guard import DeletionGuard
from app.services.patient_directory import PatientDirectory, SqlPatientDirectory
from app.services.reschedule_chain import RescheduleChainManager

logger = structlog.get_logger()

# Plain-update fields that may not be set to null
_REQUIRED_FIELDS = frozenset({"patient_id", "day", "start_time", "end_time", "modality", "status"})


class AppointmentService:
    """
    Service for booking appointments and moving them through their lifecycle.

    One instance serves one request: it is bound to the caller's tenant and
    user, and every mutation commits or rolls back as a single transaction.
    """

    def __init__(
        self,
        db: AsyncSession,
        tenant_id: UUID,
        actor_id: UUID,
        patient_directory: PatientDirectory | None = None,
        billing_ledger: BillingLedger | None = None,
        audit_sink: AuditSink | None = None,
        slot_lock: SlotLockManager | None = None,
        billable_limit: int = 50,
    ):
        """Initialize service with database session and request context."""
        self.db = db
        self.tenant_id = tenant_id
        self.actor_id = actor_id
        self.store = AppointmentStore(db, tenant_id)
        self.checker = ConflictChecker(self.store)
        self.chain = RescheduleChainManager(self.store)
        self.ledger = billing_ledger or SqlBillingLedger(db)
        self.guard = DeletionGuard(self.ledger)
        self.patients = patient_directory or SqlPatientDirectory(db)
        self.audit = audit_sink or SqlAuditSink(db)
        self.slot_lock = slot_lock
        self.billable_limit = billable_limit

    @asynccontextmanager
    async def _transaction(self, days: Iterable[date] = ()) -> AsyncIterator[None]:
        """
        Run a block as one transaction, committing on success.

        When Redis is configured the block also holds the tenant's slot
        locks for the given days.
        """
        days = sorted(set(days))
        lock = (
            self.slot_lock.hold(self.tenant_id, days)
            if self.slot_lock is not None and days
            else nullcontext()
        )
        async with lock:
            try:
                yield
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

    async def _lock_days(self, days: Iterable[date]) -> None:
        """Take the day locks in a stable order."""
        for day in sorted(set(days)):
            await self.store.lock_day(day)

    async def _lock_row(self, appointment_id: UUID) -> dict:
        """Lock an appointment row and read its current state."""
        if not await self.store.lock(appointment_id):
            raise NotFoundException("Appointment not found")
        return await self._get_row(appointment_id)

    async def _get_row(self, appointment_id: UUID) -> dict:
        """Get an appointment row or fail with not found."""
        row = await self.store.get(appointment_id)
        if not row:
            raise NotFoundException("Appointment not found")
        return row

    async def _ensure_slot_free(
        self,
        interval: TimeInterval,
        exclude_id: UUID | None = None,
    ) -> None:
        """Fail with a conflict naming the patient who holds the slot."""
        conflict = await self.checker.find_conflict(interval, exclude_id=exclude_id)
        if conflict is None:
            return
        logger.info(
            "slot_conflict_detected",
            tenant_id=str(self.tenant_id),
            requested=str(interval),
            conflicting_appointment_id=str(conflict.appointment_id),
        )
        raise SlotConflictException(conflict.patient_name, conflict.appointment_id)

    @staticmethod
    def _to_response(row: dict) -> AppointmentResponse:
        """Build an appointment response from a store row."""
        patient = None
        if row.get("patient_full_name") is not None:
            patient = PatientSummary(
                id=row["patient_id"],
                full_name=row["patient_full_name"],
                patient_code=row.get("patient_code"),
            )
        return AppointmentResponse.model_validate({**row, "patient": patient})

    @staticmethod
    def _to_link(row: dict | None) -> AppointmentLink | None:
        """Summarize the other end of a reschedule link."""
        if row is None:
            return None
        return AppointmentLink.model_validate(row)

    @staticmethod
    def _snapshot(row: dict) -> dict[str, Any]:
        """Appointment columns of a store row, for audit snapshots."""
        snapshot = {key: row[key] for key in appointments.c.keys() if key in row}
        snapshot["rescheduled_from_id"] = row.get("rescheduled_from_id")
        return snapshot

    async def get_appointment(self, appointment_id: UUID) -> AppointmentDetailResponse:
        """
        Get appointment by ID with its reschedule links and payment count.

        Raises:
            NotFoundException: If appointment not found in this tenant
        """
        row = await self._get_row(appointment_id)

        rescheduled_to = None
        if row["rescheduled_to_id"] is not None:
            rescheduled_to = await self.store.get(row["rescheduled_to_id"])

        rescheduled_from = None
        if row["rescheduled_from_id"] is not None:
            rescheduled_from = await self.store.get(row["rescheduled_from_id"])

        base = self._to_response(row)
        return AppointmentDetailResponse(
            **base.model_dump(),
            rescheduled_to=self._to_link(rescheduled_to),
            rescheduled_from=self._to_link(rescheduled_from),
            payment_count=await self.ledger.count_payments_for(appointment_id),
        )

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """List appointments with filtering and pagination, newest first."""
        total, rows = await self.store.search(filters)
        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[self._to_response(row) for row in rows],
        )

    async def list_billable_appointments(
        self,
        patient_id: UUID | None = None,
    ) -> list[AppointmentResponse]:
        """List confirmed or completed appointments that have no payment yet."""
        rows = await self.store.list_billable(patient_id, self.billable_limit)
        return [self._to_response(row) for row in rows]

    async def create_appointment(self, data: AppointmentCreate) -> AppointmentDetailResponse:
        """
        Book a new appointment.

        Args:
            data: Appointment booking data

        Returns:
            Created appointment

        Raises:
            NotFoundException: If the patient is not an active patient of this tenant
            SlotConflictException: If the slot overlaps an active appointment
        """
        interval = TimeInterval(data.day, data.start_time, data.end_time)

        async with self._transaction([data.day]):
            await self._lock_days([data.day])

            patient = await self.patients.resolve_patient(self.tenant_id, data.patient_id)
            if patient is None:
                raise NotFoundException("Patient not found")

            if data.status.is_active:
                await self._ensure_slot_free(interval)

            appointment_id = await self.store.insert(
                {
                    "patient_id": patient.id,
                    "day": data.day,
                    "start_time": data.start_time,
                    "end_time": data.end_time,
                    "modality": data.modality.value,
                    "location": data.location or None,
                    "status": data.status.value,
                    "notes": data.notes or None,
                    "cancelled_at": (
                        datetime.now(UTC) if data.status == AppointmentStatus.CANCELLED else None
                    ),
                }
            )
            await self.patients.record_first_appointment(patient.id, data.day)

        logger.info(
            "appointment_created",
            tenant_id=str(self.tenant_id),
            appointment_id=str(appointment_id),
            slot=str(interval),
        )
        return await self.get_appointment(appointment_id)

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentDetailResponse:
        """
        Update an appointment, or reschedule it when the status is ``rescheduled``.

        Args:
            appointment_id: Appointment ID
            data: Update data

        Returns:
            The updated appointment; after a reschedule, the original with its
            link to the new booking

        Raises:
            NotFoundException: If the appointment or a new patient is not found
            SlotConflictException: If the new slot overlaps an active appointment
            InvalidTransitionException: If the lifecycle forbids the status change
        """
        if data.is_reschedule:
            return await self._reschedule(appointment_id, data)

        current = await self._get_row(appointment_id)
        target_day = data.day or current["day"]

        async with self._transaction([target_day]):
            current = await self._lock_row(appointment_id)
            await self._lock_days([data.day or current["day"]])
            values = await self._plan_update(current, data)
            if values:
                await self.store.update(appointment_id, values)

        logger.info(
            "appointment_updated",
            tenant_id=str(self.tenant_id),
            appointment_id=str(appointment_id),
            fields=sorted(values),
        )
        return await self.get_appointment(appointment_id)

    async def _plan_update(self, current: dict, data: AppointmentUpdate) -> dict[str, Any]:
        """Validate a plain update against the current state and build the column values."""
        changes = {
            field: value
            for field, value in data.model_dump(
                exclude_unset=True,
                exclude={"new_day", "new_start_time", "new_end_time"},
            ).items()
            if not (value is None and field in _REQUIRED_FIELDS)
        }

        current_status = AppointmentStatus(current["status"])
        requested_status = changes.get("status", current_status)

        if current_status == AppointmentStatus.RESCHEDULED:
            if set(changes) - {"notes", "status"}:
                raise BadRequestException(
                    "Only the notes of a rescheduled appointment can be edited"
                )

        lifecycle.ensure_transition(current_status, requested_status)

        day = changes.get("day", current["day"])
        start_time = changes.get("start_time", current["start_time"])
        end_time = changes.get("end_time", current["end_time"])
        if not start_time < end_time:
            raise ValidationException("End time must be after start time")

        slot_changed = (day, start_time, end_time) != (
            current["day"],
            current["start_time"],
            current["end_time"],
        )
        if requested_status.is_active and (
            slot_changed or lifecycle.reactivates(current_status, requested_status)
        ):
            await self._ensure_slot_free(
                TimeInterval(day, start_time, end_time),
                exclude_id=current["id"],
            )

        if "patient_id" in changes and changes["patient_id"] != current["patient_id"]:
            patient = await self.patients.resolve_patient(self.tenant_id, changes["patient_id"])
            if patient is None:
                raise NotFoundException("Patient not found")

        values: dict[str, Any] = {}
        for field, value in changes.items():
            if field in ("status", "modality"):
                values[field] = value.value
            elif field in ("location", "notes"):
                values[field] = value or None
            else:
                values[field] = value

        if requested_status != current_status:
            if requested_status == AppointmentStatus.CANCELLED:
                values["cancelled_at"] = datetime.now(UTC)
            elif current_status == AppointmentStatus.CANCELLED:
                values["cancelled_at"] = None

        return values

    async def _reschedule(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
    ) -> AppointmentDetailResponse:
        """Reschedule an appointment into a new, linked booking."""
        target = TimeInterval(data.new_day, data.new_start_time, data.new_end_time)  # type: ignore[arg-type]

        await self._get_row(appointment_id)

        async with self._transaction([target.day]):
            current = await self._lock_row(appointment_id)
            await self._lock_days([target.day])

            lifecycle.ensure_transition(
                AppointmentStatus(current["status"]),
                AppointmentStatus.RESCHEDULED,
            )
            if current["status"] == AppointmentStatus.RESCHEDULED.value:
                raise InvalidTransitionException(
                    current["status"], AppointmentStatus.RESCHEDULED.value
                )

            await self._ensure_slot_free(target)
            successor_id = await self.chain.reschedule(current, target, data.notes)

        logger.info(
            "appointment_rescheduled",
            tenant_id=str(self.tenant_id),
            appointment_id=str(appointment_id),
            successor_id=str(successor_id),
            slot=str(target),
        )
        return await self.get_appointment(appointment_id)

    async def delete_appointment(self, appointment_id: UUID) -> DeleteAppointmentResponse:
        """
        Soft delete an appointment.

        Deleting a reschedule successor restores its predecessor to
        ``confirmed`` in the same transaction.

        Raises:
            NotFoundException: If appointment not found or already deleted
            GuardedDeletionException: If payments reference the appointment
        """
        await self._get_row(appointment_id)
        predecessor = await self.chain.predecessor_of(appointment_id)
        days = [predecessor["day"]] if predecessor else []

        async with self._transaction(days):
            current = await self._lock_row(appointment_id)

            check = await self.guard.check(appointment_id)
            if not check.allowed:
                logger.info(
                    "deletion_blocked_by_payments",
                    tenant_id=str(self.tenant_id),
                    appointment_id=str(appointment_id),
                    payment_count=check.payment_count,
                )
                raise GuardedDeletionException(check.payment_count)

            predecessor = await self.chain.predecessor_of(appointment_id)
            if predecessor is not None:
                await self._lock_row(predecessor["id"])
                await self._lock_days([predecessor["day"]])

            await self.store.soft_delete(appointment_id, self.actor_id)
            await self.audit.record(
                tenant_id=self.tenant_id,
                actor_id=self.actor_id,
                action=AuditAction.DELETE,
                entity_type=AuditEntity.APPOINTMENT.value,
                entity_id=appointment_id,
                before=self._snapshot(current),
            )

            if predecessor is not None:
                await self.chain.restore(predecessor)
                restored = await self._get_row(predecessor["id"])
                await self.audit.record(
                    tenant_id=self.tenant_id,
                    actor_id=self.actor_id,
                    action=AuditAction.RESTORE,
                    entity_type=AuditEntity.APPOINTMENT.value,
                    entity_id=predecessor["id"],
                    before=self._snapshot(predecessor),
                    after=self._snapshot(restored),
                )
                await self._warn_if_restored_overlaps(restored)

        logger.info(
            "appointment_deleted",
            tenant_id=str(self.tenant_id),
            appointment_id=str(appointment_id),
            actor_id=str(self.actor_id),
        )
        if predecessor is not None:
            logger.info(
                "appointment_restored",
                tenant_id=str(self.tenant_id),
                appointment_id=str(predecessor["id"]),
            )

        return DeleteAppointmentResponse(
            restored_appointment_id=predecessor["id"] if predecessor else None,
        )

    async def _warn_if_restored_overlaps(self, restored: dict) -> None:
        """Log when a restored appointment shares its slot with a later booking."""
        conflict = await self.checker.find_conflict(
            TimeInterval(restored["day"], restored["start_time"], restored["end_time"]),
            exclude_id=restored["id"],
        )
        if conflict is not None:
            logger.warning(
                "restored_appointment_overlaps",
                tenant_id=str(self.tenant_id),
                appointment_id=str(restored["id"]),
                conflicting_appointment_id=str(conflict.appointment_id),
            )
