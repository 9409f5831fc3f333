"""Audit log table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    MetaData,
    Table,
    Text,
    Uuid,
    func,
)

metadata = MetaData()

audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("tenant_id", Uuid, nullable=False),
    Column("actor_id", Uuid, nullable=False),
    Column("action", Text, nullable=False),
    Column("entity_type", Text, nullable=False),
    Column("entity_id", Uuid, nullable=False),
    Column("before_snapshot", JSON),
    Column("after_snapshot", JSON),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "action IN ('CREATE', 'UPDATE', 'DELETE', 'RESTORE')",
        name="audit_logs_action_check",
    ),
)

Index("idx_audit_logs_tenant_created", audit_logs.c.tenant_id, audit_logs.c.created_at)
Index("idx_audit_logs_entity", audit_logs.c.entity_type, audit_logs.c.entity_id)
