"""Audit log schemas."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    """
    Audit action enumeration.

    The scheduling engine records DELETE and RESTORE. CREATE and UPDATE are
    written by the other back-office modules sharing the audit trail.
    """

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"


class AuditEntity(str, Enum):
    """Audited entity types."""

    APPOINTMENT = "Appointment"


class AuditLogResponse(BaseModel):
    """Schema for an audit log entry."""

    id: UUID
    tenant_id: UUID
    actor_id: UUID
    action: AuditAction
    entity_type: str
    entity_id: UUID
    before_snapshot: dict[str, Any] | None = None
    after_snapshot: dict[str, Any] | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogFilters(BaseModel):
    """Schema for audit log filtering."""

    from_date: datetime | None = None
    to_date: datetime | None = None
    action: AuditAction | None = None
    entity_type: str | None = None
    actor_id: UUID | None = None
    limit: int = Field(default=100, ge=1, le=500)
