"""Patient directory table using SQLAlchemy Core.

Only the columns the scheduling engine reads or writes are modelled here;
the rest of the patient record belongs to the patient directory.
"""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

metadata = MetaData()

patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("tenant_id", Uuid, nullable=False),
    Column("full_name", Text, nullable=False),
    Column("patient_code", String(50)),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    # Set once, by the first appointment ever booked for the patient
    Column("first_appointment_date", Date),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("deleted_at", DateTime(timezone=True)),  # Soft delete
)

Index("idx_patients_tenant_id", patients.c.tenant_id)
