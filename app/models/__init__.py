"""Database models."""

from sqlalchemy import MetaData

from app.models.appointments import appointment_day_locks, appointments
from app.models.audit_logs import audit_logs
from app.models.patients import patients
from app.models.payments import payments

ALL_TABLES = (patients, appointments, appointment_day_locks, payments, audit_logs)


def combined_metadata() -> MetaData:
    """Collect every table into one MetaData for create_all and autogenerate."""
    metadata = MetaData()
    for table in ALL_TABLES:
        table.to_metadata(metadata)
    return metadata


__all__ = [
    "ALL_TABLES",
    "appointment_day_locks",
    "appointments",
    "audit_logs",
    "combined_metadata",
    "patients",
    "payments",
]
