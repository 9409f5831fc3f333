"""Billing ledger lookups used by the scheduling engine."""

from typing import Protocol
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.payments import payments


class BillingLedger(Protocol):
    """Answers questions about payments recorded against appointments."""

    async def count_payments_for(self, appointment_id: UUID) -> int:
        """Count payment records referencing an appointment."""
        ...


class SqlBillingLedger:
    """Billing ledger backed by the ``payments`` table."""

    def __init__(self, db: AsyncSession):
        """Initialize ledger with database session."""
        self.db = db

    async def count_payments_for(self, appointment_id: UUID) -> int:
        """Count payment records referencing an appointment."""
        stmt = (
            select(func.count())
            .select_from(payments)
            .where(payments.c.appointment_id == appointment_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0
