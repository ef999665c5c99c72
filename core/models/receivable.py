"""Receivable (amount owed by a customer) domain models.

All amounts are stored in cents (integer) and served as decimal strings.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, Field, computed_field

from core.money import MoneyAmount, format_cents
from core.status import ReceivableStatus
from utils.timezone import parse_date

CalendarDate = Annotated[date, BeforeValidator(parse_date)]


class ReceivableCreate(BaseModel):
    """Data required to create a receivable."""

    customer_id: UUID
    amount: MoneyAmount
    due_date: CalendarDate
    description: str = Field(..., min_length=1, max_length=2000)
    paid_amount: MoneyAmount = Decimal("0")
    notes: str | None = Field(None, max_length=10000)


class ReceivableUpdate(BaseModel):
    """
    Data that can be updated on a receivable. All fields optional.

    paid_amount is deliberately absent: payments go through the payment
    recorder so every paid cent has a matching income entry.
    """

    amount: MoneyAmount | None = None
    due_date: CalendarDate | None = None
    description: str | None = Field(None, min_length=1, max_length=2000)
    notes: str | None = Field(None, max_length=10000)
    status: ReceivableStatus | None = None


class ReceivableFilter(BaseModel):
    """Listing filter for receivables. status matches the derived status."""

    customer_id: UUID | None = None
    status: ReceivableStatus | None = None
    due_before: CalendarDate | None = None
    limit: int = Field(50, ge=1)
    offset: int = Field(0, ge=0)


class Receivable(BaseModel):
    """Full receivable entity as stored."""

    id: UUID
    customer_id: UUID
    deposit_id: UUID | None = None
    amount_cents: int
    paid_amount_cents: int
    due_date: date
    description: str
    notes: str | None
    status: ReceivableStatus
    receipt_ref: str | None = None
    created_at: datetime
    updated_at: datetime

    # Not stored: status derived for the day the record was read
    effective_status: ReceivableStatus | None = None

    model_config = {"from_attributes": True}

    @property
    def remaining_cents(self) -> int:
        """Amount still owed in cents."""
        return self.amount_cents - self.paid_amount_cents

    @computed_field
    @property
    def amount(self) -> str:
        return format_cents(self.amount_cents)

    @computed_field
    @property
    def paid_amount(self) -> str:
        return format_cents(self.paid_amount_cents)

    @computed_field
    @property
    def remaining(self) -> str:
        return format_cents(self.remaining_cents)


class PaymentCreate(BaseModel):
    """A payment to apply against a receivable."""

    amount: MoneyAmount
    receipt_ref: str | None = Field(None, max_length=255)
    idempotency_key: str | None = Field(None, min_length=1, max_length=255)


class ReceivablePayment(BaseModel):
    """One applied payment, as recorded."""

    id: UUID
    receivable_id: UUID
    amount_cents: int
    receipt_ref: str | None
    idempotency_key: str | None
    applied_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def amount(self) -> str:
        return format_cents(self.amount_cents)
