"""Audit log endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.config import settings
from app.dependencies import AdminContext, DatabaseSession
from app.schemas.audit import AuditAction, AuditLogFilters, AuditLogResponse
from app.services.audit_service import AuditLogService

router = APIRouter()


@router.get(
    "/audit-logs",
    response_model=list[AuditLogResponse],
    status_code=status.HTTP_200_OK,
    tags=["Audit"],
    summary="List audit log entries",
)
async def list_audit_logs(
    context: AdminContext,
    db: DatabaseSession,
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    action: AuditAction | None = Query(None),
    entity_type: str | None = Query(None),
    actor_id: UUID | None = Query(None),
    limit: int = Query(settings.audit_log_default_limit, ge=1, le=500),
) -> list[AuditLogResponse]:
    """
    List the organization's audit trail, newest first. Administrators only.

    Args:
        context: Authenticated administrator
        db: Database session
        from_date: Earliest entry timestamp
        to_date: Latest entry timestamp
        action: Filter by action
        entity_type: Filter by entity type
        actor_id: Filter by acting user
        limit: Maximum number of entries

    Returns:
        Audit log entries
    """
    filters = AuditLogFilters(
        from_date=from_date,
        to_date=to_date,
        action=action,
        entity_type=entity_type,
        actor_id=actor_id,
        limit=limit,
    )
    return await AuditLogService(db).list_audit_logs(context.tenant_id, filters)
