"""Income ledger entry models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, computed_field

from core.money import format_cents


class IncomeSource(str, Enum):
    """What produced an income entry."""

    DEPOSIT = "deposit"
    DEPOSIT_REFUND = "deposit_refund"
    RECEIVABLE_PAYMENT = "receivable_payment"


class IncomeEntry(BaseModel):
    """Confirmed revenue event. Negative amounts are reversals."""

    id: UUID
    amount_cents: int
    source: IncomeSource
    reference_id: UUID
    customer_id: UUID | None
    description: str | None
    created_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def amount(self) -> str:
        return format_cents(self.amount_cents)
