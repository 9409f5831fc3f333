import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Settings are read at import time; keep tests runnable without a .env
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from app.core.security import create_access_token
from app.database import get_db, to_async_url
from app.main import app
from app.models import combined_metadata
from app.models.patients import patients
from app.models.payments import payments
from app.services.appointment_service import AppointmentService

metadata = combined_metadata()

# Test database URL - defaults to a private in-memory SQLite database.
# Point TEST_DATABASE_URL at a disposable PostgreSQL database to run the
# suite against the production dialect.
TEST_DATABASE_URL = to_async_url(
    os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
)


def _create_test_engine() -> AsyncEngine:
    """Create an engine for one test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection keeps the in-memory database alive
        return create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session over freshly created tables."""
    engine = _create_test_engine()

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def tenant_id() -> UUID:
    """Organization the test user belongs to."""
    return uuid4()


@pytest.fixture
def other_tenant_id() -> UUID:
    """A second, unrelated organization."""
    return uuid4()


@pytest.fixture
def staff_user_id() -> UUID:
    """ID of the acting staff member."""
    return uuid4()


def make_token(user_id: UUID, tenant_id: UUID, role: str = "staff") -> str:
    """Create an access token carrying user, organization and role claims."""
    return create_access_token(
        data={"sub": str(user_id), "org": str(tenant_id), "role": role},
        expires_delta=timedelta(minutes=30),
    )


@pytest.fixture
def auth_headers(staff_user_id: UUID, tenant_id: UUID) -> dict:
    """Create authentication headers for a staff member."""
    return {"Authorization": f"Bearer {make_token(staff_user_id, tenant_id)}"}


@pytest.fixture
def admin_headers(tenant_id: UUID) -> dict:
    """Create authentication headers for a tenant administrator."""
    return {"Authorization": f"Bearer {make_token(uuid4(), tenant_id, role='admin')}"}


@pytest.fixture
def other_tenant_headers(other_tenant_id: UUID) -> dict:
    """Create authentication headers for a staff member of another organization."""
    return {"Authorization": f"Bearer {make_token(uuid4(), other_tenant_id)}"}


PatientFactory = Callable[..., Awaitable[UUID]]


@pytest.fixture
def make_patient(db_session: AsyncSession, tenant_id: UUID) -> PatientFactory:
    """Insert patients into the directory."""

    async def _make_patient(
        full_name: str = "Ana García",
        tenant: UUID | None = None,
        is_active: bool = True,
        patient_code: str | None = None,
    ) -> UUID:
        patient_id = uuid4()
        await db_session.execute(
            insert(patients).values(
                id=patient_id,
                tenant_id=tenant or tenant_id,
                full_name=full_name,
                patient_code=patient_code,
                is_active=is_active,
            )
        )
        await db_session.commit()
        return patient_id

    return _make_patient


@pytest_asyncio.fixture
async def patient(make_patient: PatientFactory) -> UUID:
    """An active patient of the test organization."""
    return await make_patient("Ana García", patient_code="P-0001")


@pytest.fixture
def add_payment(db_session: AsyncSession, tenant_id: UUID) -> Callable[..., Awaitable[UUID]]:
    """Record a payment against an appointment."""

    async def _add_payment(appointment_id: UUID, amount: Decimal = Decimal("50.00")) -> UUID:
        payment_id = uuid4()
        await db_session.execute(
            insert(payments).values(
                id=payment_id,
                tenant_id=tenant_id,
                appointment_id=appointment_id,
                amount=amount,
                method="cash",
            )
        )
        await db_session.commit()
        return payment_id

    return _add_payment


@pytest.fixture
def service(db_session: AsyncSession, tenant_id: UUID, staff_user_id: UUID) -> AppointmentService:
    """Appointment service bound to the test organization."""
    return AppointmentService(db_session, tenant_id=tenant_id, actor_id=staff_user_id)
