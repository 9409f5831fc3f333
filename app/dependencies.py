"""FastAPI dependencies."""

from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.redis_client import get_slot_lock_manager
from app.core.security import decode_access_token
from app.database import get_db
from app.services.appointment_service import AppointmentService

# Security
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller and the tenant every request is scoped to."""

    user_id: UUID
    tenant_id: UUID
    role: str

    @property
    def is_admin(self) -> bool:
        """Check if the caller is a tenant administrator."""
        return self.role == "admin"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> AuthContext:
    """
    Extract and validate the caller and tenant from a JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Authenticated request context

    Raises:
        HTTPException: If token is missing, invalid or expired
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    user_id_str = payload.get("sub")
    tenant_id_str = payload.get("org")
    if not isinstance(user_id_str, str) or not isinstance(tenant_id_str, str):
        raise _unauthorized("Could not validate credentials")

    try:
        return AuthContext(
            user_id=UUID(user_id_str),
            tenant_id=UUID(tenant_id_str),
            role=str(payload.get("role", "staff")),
        )
    except ValueError:
        raise _unauthorized("Invalid user or organization ID format")


async def require_admin(
    context: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthContext:
    """Allow only tenant administrators."""
    if not context.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )
    return context


async def get_appointment_service(
    context: Annotated[AuthContext, Depends(get_auth_context)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AppointmentService:
    """Build the appointment service for the caller's tenant."""
    return AppointmentService(
        db,
        tenant_id=context.tenant_id,
        actor_id=context.user_id,
        slot_lock=get_slot_lock_manager(),
        billable_limit=settings.billable_appointments_limit,
    )


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
AdminContext = Annotated[AuthContext, Depends(require_admin)]
Appointments = Annotated[AppointmentService, Depends(get_appointment_service)]
