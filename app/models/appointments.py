"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
    Time,
    Uuid,
    func,
)

# Metadata for all tables
metadata = MetaData()

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column("tenant_id", Uuid, nullable=False),
    Column("patient_id", Uuid, nullable=False),
    # Slot
    Column("day", Date, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    # Appointment details
    Column("modality", Text, nullable=False, server_default="in_person"),
    Column("location", Text, nullable=True),
    Column("notes", Text, nullable=True),
    # Status management
    Column("status", Text, nullable=False, server_default="confirmed"),
    # Forward link of a reschedule chain; the backward link is derived
    Column(
        "rescheduled_to_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    ),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    # Soft delete (healthcare compliance)
    Column("deleted_at", DateTime(timezone=True), nullable=True),
    Column("deleted_by_id", Uuid, nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('confirmed', 'no_response', 'cancelled', 'rescheduled', 'completed')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "modality IN ('in_person', 'virtual', 'shock_therapy', 'capillary_therapy')",
        name="appointments_modality_check",
    ),
    CheckConstraint("start_time < end_time", name="appointments_time_order_check"),
    CheckConstraint(
        "(status = 'rescheduled') = (rescheduled_to_id IS NOT NULL)",
        name="appointments_reschedule_link_check",
    ),
)

Index("idx_appointments_tenant_day", appointments.c.tenant_id, appointments.c.day)
Index("idx_appointments_patient_id", appointments.c.patient_id)
Index("idx_appointments_status", appointments.c.status)

# One row per tenant calendar day, row-locked while a mutation checks that day
appointment_day_locks = Table(
    "appointment_day_locks",
    metadata,
    Column("tenant_id", Uuid, nullable=False),
    Column("day", Date, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    PrimaryKeyConstraint("tenant_id", "day", name="appointment_day_locks_pkey"),
)
