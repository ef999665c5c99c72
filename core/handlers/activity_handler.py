"""
Handlers that feed the dashboard activity log.

One handler per ledger event type. Each records a single feed entry
describing what happened, after the ledger transaction has committed.
"""

import logging
from typing import Callable

from core.events import (
    DepositEvent, DepositCreated, DepositUpdated, DepositApplied, DepositRefunded, DepositDeleted,
    ReceivableEvent, ReceivableCreated, ReceivableUpdated, ReceivableDeleted, PaymentApplied,
)
from core.models import ActivityKind
from core.money import format_cents

logger = logging.getLogger(__name__)


def _deposit_handler(activity_service, kind: ActivityKind, verb: str) -> Callable:
    def handler(event: DepositEvent):
        deposit = event.deposit
        activity_service.record(
            kind,
            f"Deposit of {format_cents(deposit.amount_cents)} {verb}",
            entity_id=deposit.id,
        )

    handler.__name__ = f"record_{kind.value}"
    return handler


def _receivable_handler(activity_service, kind: ActivityKind, verb: str) -> Callable:
    def handler(event: ReceivableEvent):
        receivable = event.receivable
        activity_service.record(
            kind,
            f"Receivable '{receivable.description}' of {format_cents(receivable.amount_cents)} {verb}",
            entity_id=receivable.id,
        )

    handler.__name__ = f"record_{kind.value}"
    return handler


def handle_payment_applied(activity_service) -> Callable:
    """
    Factory that returns a PaymentApplied handler.

    Args:
        activity_service: ActivityService instance
    """

    def record_receivable_paid(event: PaymentApplied):
        receivable = event.receivable
        description = (
            f"Payment of {format_cents(event.amount_cents)} received on "
            f"'{receivable.description}'"
        )
        if receivable.remaining_cents == 0:
            description += " (paid in full)"

        activity_service.record(ActivityKind.RECEIVABLE_PAID, description, entity_id=receivable.id)

    return record_receivable_paid


def activity_handlers(activity_service) -> dict[str, Callable]:
    """
    Build the activity feed handlers keyed by event class name.

    Usage:
        for event_type, handler in activity_handlers(activity_service).items():
            event_bus.subscribe(event_type, handler)
    """
    return {
        DepositCreated.__name__: _deposit_handler(activity_service, ActivityKind.DEPOSIT_ADDED, "recorded"),
        DepositUpdated.__name__: _deposit_handler(activity_service, ActivityKind.DEPOSIT_UPDATED, "updated"),
        DepositApplied.__name__: _deposit_handler(activity_service, ActivityKind.DEPOSIT_APPLIED, "applied"),
        DepositRefunded.__name__: _deposit_handler(activity_service, ActivityKind.DEPOSIT_REFUNDED, "refunded"),
        DepositDeleted.__name__: _deposit_handler(activity_service, ActivityKind.DEPOSIT_DELETED, "deleted"),
        ReceivableCreated.__name__: _receivable_handler(activity_service, ActivityKind.RECEIVABLE_ADDED, "added"),
        ReceivableUpdated.__name__: _receivable_handler(activity_service, ActivityKind.RECEIVABLE_UPDATED, "updated"),
        ReceivableDeleted.__name__: _receivable_handler(activity_service, ActivityKind.RECEIVABLE_DELETED, "deleted"),
        PaymentApplied.__name__: handle_payment_applied(activity_service),
    }
