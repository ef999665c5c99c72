"""
Domain events for the deposits & receivables ledger.

Immutable event objects that represent committed ledger changes. Services
publish what happened; read-model projections (activity feed, dashboard
summary cache) react without the publisher knowing who's listening.

Event Categories:
- DepositEvent: Deposit lifecycle (create, update, apply, refund, delete)
- ReceivableEvent: Receivable lifecycle (create, update, delete, payment)

Events carry the full domain object so handlers don't need to re-fetch state.
They are published only after the ledger transaction has committed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class LedgerEvent:
    """Base class for all ledger domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


# =============================================================================
# DEPOSIT EVENTS
# =============================================================================


@dataclass(frozen=True)
class DepositEvent(LedgerEvent):
    """Events related to deposit lifecycle."""
    deposit: Any = None  # Deposit; Any avoids a circular import


@dataclass(frozen=True)
class DepositCreated(DepositEvent):
    """A deposit was recorded."""

    @classmethod
    def create(cls, deposit: Any) -> "DepositCreated":
        return cls(deposit=deposit)


@dataclass(frozen=True)
class DepositUpdated(DepositEvent):
    """A deposit's fields were edited."""

    @classmethod
    def create(cls, deposit: Any) -> "DepositUpdated":
        return cls(deposit=deposit)


@dataclass(frozen=True)
class DepositApplied(DepositEvent):
    """A deposit was applied to an invoice or order."""

    @classmethod
    def create(cls, deposit: Any) -> "DepositApplied":
        return cls(deposit=deposit)


@dataclass(frozen=True)
class DepositRefunded(DepositEvent):
    """A deposit was returned to the customer."""

    @classmethod
    def create(cls, deposit: Any) -> "DepositRefunded":
        return cls(deposit=deposit)


@dataclass(frozen=True)
class DepositDeleted(DepositEvent):
    """A deposit was hard-deleted. Carries the last known state."""

    @classmethod
    def create(cls, deposit: Any) -> "DepositDeleted":
        return cls(deposit=deposit)


# =============================================================================
# RECEIVABLE EVENTS
# =============================================================================


@dataclass(frozen=True)
class ReceivableEvent(LedgerEvent):
    """Events related to receivable lifecycle."""
    receivable: Any = None


@dataclass(frozen=True)
class ReceivableCreated(ReceivableEvent):
    """A receivable was created, directly or as a deposit's remainder."""

    @classmethod
    def create(cls, receivable: Any) -> "ReceivableCreated":
        return cls(receivable=receivable)


@dataclass(frozen=True)
class ReceivableUpdated(ReceivableEvent):
    """A receivable's fields or status were edited."""

    @classmethod
    def create(cls, receivable: Any) -> "ReceivableUpdated":
        return cls(receivable=receivable)


@dataclass(frozen=True)
class ReceivableDeleted(ReceivableEvent):
    """A receivable was hard-deleted. Carries the last known state."""

    @classmethod
    def create(cls, receivable: Any) -> "ReceivableDeleted":
        return cls(receivable=receivable)


@dataclass(frozen=True)
class PaymentApplied(ReceivableEvent):
    """A payment was applied to a receivable."""
    amount_cents: int = 0

    @classmethod
    def create(cls, receivable: Any, amount_cents: int) -> "PaymentApplied":
        return cls(receivable=receivable, amount_cents=amount_cents)
