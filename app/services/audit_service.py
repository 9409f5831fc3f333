"""Audit trail for destructive mutations."""

from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import and_, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_logs import audit_logs
from app.schemas.audit import AuditAction, AuditLogFilters, AuditLogResponse


def serialize_for_audit(
    data: Mapping[str, Any],
    exclude_fields: Iterable[str] = (),
) -> dict[str, Any]:
    """
    Convert a row into a JSON-safe snapshot.

    Dates and times become ISO strings, UUIDs become strings, decimals
    become floats and enums their values. Nested mappings and sequences
    are skipped.
    """
    excluded = set(exclude_fields)
    snapshot: dict[str, Any] = {}

    for key, value in data.items():
        if key in excluded:
            continue
        if value is None:
            snapshot[key] = None
        elif isinstance(value, Enum):
            snapshot[key] = value.value
        elif isinstance(value, datetime | date | time):
            snapshot[key] = value.isoformat()
        elif isinstance(value, UUID):
            snapshot[key] = str(value)
        elif isinstance(value, Decimal):
            snapshot[key] = float(value)
        elif isinstance(value, str | int | float | bool):
            snapshot[key] = value
        # Nested objects are dropped

    return snapshot


class AuditSink(Protocol):
    """Receives records of destructive mutations."""

    async def record(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        before: Mapping[str, Any] | None,
        after: Mapping[str, Any] | None = None,
    ) -> None:
        """Record one mutation."""
        ...


class SqlAuditSink:
    """Audit sink writing to the ``audit_logs`` table in the caller's transaction."""

    def __init__(self, db: AsyncSession):
        """Initialize sink with database session."""
        self.db = db

    async def record(
        self,
        tenant_id: UUID,
        actor_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        before: Mapping[str, Any] | None,
        after: Mapping[str, Any] | None = None,
    ) -> None:
        """Record one mutation with serialized before/after snapshots."""
        stmt = insert(audit_logs).values(
            tenant_id=tenant_id,
            actor_id=actor_id,
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            before_snapshot=serialize_for_audit(before) if before is not None else None,
            after_snapshot=serialize_for_audit(after) if after is not None else None,
            created_at=datetime.now(UTC),
        )
        await self.db.execute(stmt)


class AuditLogService:
    """Read access to a tenant's audit trail."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def list_audit_logs(
        self,
        tenant_id: UUID,
        filters: AuditLogFilters,
    ) -> list[AuditLogResponse]:
        """List audit entries of a tenant, newest first."""
        conditions = [audit_logs.c.tenant_id == tenant_id]

        if filters.from_date:
            conditions.append(audit_logs.c.created_at >= filters.from_date)

        if filters.to_date:
            conditions.append(audit_logs.c.created_at <= filters.to_date)

        if filters.action:
            conditions.append(audit_logs.c.action == filters.action.value)

        if filters.entity_type:
            conditions.append(audit_logs.c.entity_type == filters.entity_type)

        if filters.actor_id:
            conditions.append(audit_logs.c.actor_id == filters.actor_id)

        stmt = (
            select(audit_logs)
            .where(and_(*conditions))
            .order_by(audit_logs.c.created_at.desc())
            .limit(filters.limit)
        )
        result = await self.db.execute(stmt)
        return [AuditLogResponse.model_validate(dict(row)) for row in result.mappings().all()]
