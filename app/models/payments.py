"""Payments ledger table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    MetaData,
    Numeric,
    String,
    Table,
    Uuid,
    func,
)

metadata = MetaData()

payments = Table(
    "payments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("tenant_id", Uuid, nullable=False),
    Column("appointment_id", Uuid, nullable=True),
    Column("patient_id", Uuid, nullable=True),
    Column("amount", Numeric(12, 2), nullable=False),
    Column("method", String(30)),  # cash, card, transfer
    Column("paid_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

Index("idx_payments_appointment_id", payments.c.appointment_id)
