"""
Lifecycle status rules for deposits and receivables.

Pure functions only: no database, no clock. Callers pass "today" in so the
same inputs always give the same status.

Receivable status is derived from (amount, paid, due date, today). The
stored status column is a cache of that derivation, refreshed on every
mutation. CANCELLED is the one administrative override: once set, automatic
re-derivation never replaces it.
"""

from datetime import date
from enum import Enum

from core.exceptions import ConflictError


class ReceivableStatus(str, Enum):
    """Receivable lifecycle status."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class DepositStatus(str, Enum):
    """Deposit lifecycle status."""

    ACTIVE = "active"
    APPLIED = "applied"
    REFUNDED = "refunded"


CLOSED_RECEIVABLE_STATUSES = frozenset({ReceivableStatus.PAID, ReceivableStatus.CANCELLED})

# Allowed deposit transitions: from -> set of targets
DEPOSIT_TRANSITIONS: dict[DepositStatus, frozenset[DepositStatus]] = {
    DepositStatus.ACTIVE: frozenset({DepositStatus.APPLIED, DepositStatus.REFUNDED}),
    DepositStatus.APPLIED: frozenset(),
    DepositStatus.REFUNDED: frozenset(),
}


def derive_status(
    amount_cents: int,
    paid_cents: int,
    due_date: date,
    today: date,
    current: ReceivableStatus | None = None,
) -> ReceivableStatus:
    """
    Derive a receivable's status.

    Args:
        amount_cents: Total owed
        paid_cents: Cumulative amount paid
        due_date: Calendar due date
        today: Business calendar date to evaluate against
        current: Stored status; CANCELLED here is sticky

    Returns:
        PAID when paid >= amount (even past the due date), else OVERDUE when
        today is after the due date, else PENDING.
    """
    if current == ReceivableStatus.CANCELLED:
        return ReceivableStatus.CANCELLED

    if paid_cents >= amount_cents:
        return ReceivableStatus.PAID

    if today > due_date:
        return ReceivableStatus.OVERDUE

    return ReceivableStatus.PENDING


def initial_status(amount_cents: int, paid_cents: int) -> ReceivableStatus:
    """
    Status stored when a receivable is created.

    Never OVERDUE: a past due date shows up through derive_status at read
    time, not as a stored default.
    """
    if paid_cents >= amount_cents:
        return ReceivableStatus.PAID
    return ReceivableStatus.PENDING


def is_closed(status: ReceivableStatus) -> bool:
    """Closed receivables accept no further payments."""
    return status in CLOSED_RECEIVABLE_STATUSES


def check_deposit_transition(current: DepositStatus, target: DepositStatus) -> None:
    """
    Validate a deposit status change.

    Raises:
        ConflictError: If the transition is not allowed
    """
    if target not in DEPOSIT_TRANSITIONS[current]:
        raise ConflictError(
            f"Deposit cannot move from '{current.value}' to '{target.value}'"
        )
