"""Tests for token handling and the request context."""

from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from app.core.security import create_access_token, decode_access_token
from app.dependencies import get_auth_context, require_admin


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def test_token_round_trip() -> None:
    """Test a freshly issued token decodes to its claims."""
    token = create_access_token({"sub": "user", "org": "tenant"})
    payload = decode_access_token(token)

    assert payload is not None
    assert payload["sub"] == "user"
    assert payload["type"] == "access"


def test_expired_token_is_rejected() -> None:
    """Test expired tokens do not decode."""
    token = create_access_token({"sub": "user"}, expires_delta=timedelta(seconds=-1))
    assert decode_access_token(token) is None


@pytest.mark.asyncio
async def test_auth_context_from_claims() -> None:
    """Test the caller and organization come from the token."""
    user_id, tenant_id = uuid4(), uuid4()
    token = create_access_token({"sub": str(user_id), "org": str(tenant_id), "role": "admin"})

    context = await get_auth_context(bearer(token))

    assert context.user_id == user_id
    assert context.tenant_id == tenant_id
    assert context.is_admin
    assert await require_admin(context) is context


@pytest.mark.asyncio
async def test_token_without_organization_is_rejected() -> None:
    """Test every request must be bound to an organization."""
    token = create_access_token({"sub": str(uuid4())})

    with pytest.raises(HTTPException) as exc_info:
        await get_auth_context(bearer(token))
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_malformed_ids_are_rejected() -> None:
    """Test non-UUID claims are refused."""
    token = create_access_token({"sub": "not-a-uuid", "org": str(uuid4())})

    with pytest.raises(HTTPException) as exc_info:
        await get_auth_context(bearer(token))
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_staff_is_not_admin() -> None:
    """Test the admin guard refuses staff members."""
    token = create_access_token({"sub": str(uuid4()), "org": str(uuid4())})
    context = await get_auth_context(bearer(token))

    with pytest.raises(HTTPException) as exc_info:
        await require_admin(context)
    assert exc_info.value.status_code == 403
