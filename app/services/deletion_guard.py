"""Guard against deleting appointments that have been paid for."""

from dataclasses import dataclass
from uuid import UUID

from app.services.billing_ledger import BillingLedger


@dataclass(frozen=True)
class DeletionCheck:
    """Outcome of a deletion guard check."""

    allowed: bool
    payment_count: int


class DeletionGuard:
    """Refuses deletion of any appointment referenced by a payment."""

    def __init__(self, ledger: BillingLedger):
        """Initialize guard with a billing ledger."""
        self.ledger = ledger

    async def check(self, appointment_id: UUID) -> DeletionCheck:
        """Check whether an appointment may be deleted."""
        payment_count = await self.ledger.count_payments_for(appointment_id)
        return DeletionCheck(allowed=payment_count == 0, payment_count=payment_count)
