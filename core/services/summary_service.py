"""
Dashboard ledger summary.

Totals computed from the ledger tables and cached in Valkey. The cache is a
read model only: ledger events invalidate it, and an unreachable Valkey
means the summary is computed from PostgreSQL on every call.
"""

import logging
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

import redis

from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from core.config import LedgerConfig
from core.money import format_cents
from core.services.income_service import IncomeService
from utils.timezone import business_today, now_utc

logger = logging.getLogger(__name__)

SUMMARY_CACHE_KEY = "ledger:summary"


class LedgerSummaryService:
    """Service for the dashboard ledger totals."""

    def __init__(
        self,
        postgres: PostgresClient,
        valkey: ValkeyClient | None,
        income: IncomeService,
        config: LedgerConfig,
    ):
        self.postgres = postgres
        self.valkey = valkey
        self.income = income
        self.config = config

    def get_summary(self) -> dict[str, Any]:
        """
        Ledger totals for the dashboard.

        Returns:
            Dict with decimal-string amounts:
                active_deposits_count, active_deposits_total,
                outstanding_total, overdue_count, overdue_total,
                month_income, as_of
        """
        cached = self._read_cache()
        if cached is not None:
            return cached

        summary = self._compute()
        self._write_cache(summary)
        return summary

    def invalidate(self) -> None:
        """Drop the cached summary. Failures are logged, not raised."""
        if self.valkey is None:
            return
        try:
            self.valkey.delete(SUMMARY_CACHE_KEY)
        except redis.RedisError as e:
            logger.warning("Could not invalidate ledger summary cache: %s", e)

    def _compute(self) -> dict[str, Any]:
        today = business_today(self.config.business_timezone)

        deposits = self.postgres.execute_single(
            """
            SELECT COUNT(*) AS count, COALESCE(SUM(amount_cents), 0) AS total
            FROM deposits
            WHERE status = 'active'
            """
        )

        receivables = self.postgres.execute_single(
            """
            SELECT
                COALESCE(SUM(amount_cents - paid_amount_cents), 0) AS outstanding,
                COUNT(*) FILTER (WHERE due_date < %s) AS overdue_count,
                COALESCE(SUM(amount_cents - paid_amount_cents) FILTER (WHERE due_date < %s), 0)
                    AS overdue_total
            FROM receivables
            WHERE status NOT IN ('paid', 'cancelled')
            """,
            (today, today)
        )

        tz = ZoneInfo(self.config.business_timezone)
        month_start = datetime(today.year, today.month, 1, tzinfo=tz)
        if today.month == 12:
            month_end = datetime(today.year + 1, 1, 1, tzinfo=tz)
        else:
            month_end = datetime(today.year, today.month + 1, 1, tzinfo=tz)
        month_income = self.income.total_between(
            month_start.astimezone(timezone.utc), month_end.astimezone(timezone.utc)
        )

        return {
            "active_deposits_count": int(deposits["count"]),
            "active_deposits_total": format_cents(int(deposits["total"])),
            "outstanding_total": format_cents(int(receivables["outstanding"])),
            "overdue_count": int(receivables["overdue_count"]),
            "overdue_total": format_cents(int(receivables["overdue_total"])),
            "month_income": format_cents(month_income),
            "as_of": now_utc().isoformat(),
        }

    def _read_cache(self) -> dict[str, Any] | None:
        if self.valkey is None:
            return None
        try:
            return self.valkey.get_json(SUMMARY_CACHE_KEY)
        except (redis.RedisError, ValueError) as e:
            logger.warning("Ledger summary cache read failed: %s", e)
            return None

    def _write_cache(self, summary: dict[str, Any]) -> None:
        if self.valkey is None:
            return
        try:
            self.valkey.set_json(
                SUMMARY_CACHE_KEY, summary, expire_seconds=self.config.summary_cache_ttl_seconds
            )
        except redis.RedisError as e:
            logger.warning("Ledger summary cache write failed: %s", e)
