"""Deposit (customer prepayment) domain models.

All amounts are stored in cents (integer). The API exchanges them as decimal
strings: amount_cents=30000 is served as amount="300.00".
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, computed_field

from core.money import MoneyAmount, format_cents
from core.status import DepositStatus


class DepositCreate(BaseModel):
    """Data required to record a deposit."""

    customer_id: UUID
    amount: MoneyAmount
    total_amount: MoneyAmount | None = None
    description: str | None = Field(None, max_length=2000)
    status: DepositStatus = DepositStatus.ACTIVE
    receipt_ref: str | None = Field(None, max_length=255)


class DepositUpdate(BaseModel):
    """Data that can be updated on a deposit. All fields optional."""

    amount: MoneyAmount | None = None
    total_amount: MoneyAmount | None = None
    description: str | None = Field(None, max_length=2000)
    status: DepositStatus | None = None
    receipt_ref: str | None = Field(None, max_length=255)


class DepositFilter(BaseModel):
    """Listing filter for deposits."""

    customer_id: UUID | None = None
    status: DepositStatus | None = None
    limit: int = Field(50, ge=1)
    offset: int = Field(0, ge=0)


class Deposit(BaseModel):
    """Full deposit entity as stored."""

    id: UUID
    customer_id: UUID
    amount_cents: int
    total_amount_cents: int | None
    description: str | None
    status: DepositStatus
    receipt_ref: str | None
    applied_reference: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_full_payment(self) -> bool:
        """Whether the deposit covers its whole declared value."""
        return self.total_amount_cents is None or self.total_amount_cents == self.amount_cents

    @property
    def remainder_cents(self) -> int:
        """Declared value not yet received (0 for full payments)."""
        if self.total_amount_cents is None:
            return 0
        return self.total_amount_cents - self.amount_cents

    @computed_field
    @property
    def amount(self) -> str:
        return format_cents(self.amount_cents)

    @computed_field
    @property
    def total_amount(self) -> str | None:
        if self.total_amount_cents is None:
            return None
        return format_cents(self.total_amount_cents)

    @computed_field
    @property
    def remainder(self) -> str:
        return format_cents(self.remainder_cents)
