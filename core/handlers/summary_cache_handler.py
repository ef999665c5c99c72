"""
Handler that drops the cached dashboard ledger summary.

Subscribed to every ledger event, so the next dashboard read recomputes
the totals from the ledger tables.
"""

import logging
from typing import Callable

from core.events import LedgerEvent

logger = logging.getLogger(__name__)

LEDGER_EVENT_TYPES = (
    "DepositCreated",
    "DepositUpdated",
    "DepositApplied",
    "DepositRefunded",
    "DepositDeleted",
    "ReceivableCreated",
    "ReceivableUpdated",
    "ReceivableDeleted",
    "PaymentApplied",
)


def handle_ledger_changed(summary_service) -> Callable:
    """
    Factory that returns a handler invalidating the summary cache.

    Args:
        summary_service: LedgerSummaryService instance
    """

    def invalidate_ledger_summary(event: LedgerEvent):
        summary_service.invalidate()
        logger.debug("Ledger summary invalidated by %s", event.__class__.__name__)

    return invalidate_ledger_summary
