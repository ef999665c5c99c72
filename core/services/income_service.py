"""
Income ledger: the accounting sink for confirmed revenue.

Entries are posted inside the caller's ledger transaction. If the insert
fails the caller's whole mutation rolls back, so the ledger never shows a
payment that was not also accounted for.
"""

import logging
from datetime import datetime
from uuid import UUID, uuid4

import psycopg2

from clients.postgres_client import PostgresClient, Transaction
from core.exceptions import DependencyError
from core.models import IncomeEntry, IncomeSource
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class IncomeService:
    """Service for income ledger entries."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def post(
        self,
        tx: Transaction,
        amount_cents: int,
        source: IncomeSource,
        reference_id: UUID,
        customer_id: UUID | None = None,
        description: str | None = None,
    ) -> IncomeEntry:
        """
        Post an income entry within an open transaction.

        Args:
            tx: The ledger transaction the entry belongs to
            amount_cents: Revenue in cents; negative for reversals, never zero
            source: What produced the revenue
            reference_id: Deposit or receivable the entry belongs to
            customer_id: Customer the revenue came from
            description: Free-text label for reports

        Raises:
            ValueError: If amount_cents is zero
            DependencyError: If the entry could not be written
        """
        if amount_cents == 0:
            raise ValueError("Income entries cannot be zero")

        try:
            row = tx.execute_returning(
                """
                INSERT INTO income_entries (
                    id, amount_cents, source, reference_id,
                    customer_id, description, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(), amount_cents, source.value, reference_id,
                    customer_id, description, now_utc()
                )
            )[0]
        except psycopg2.Error as e:
            logger.error("Income posting failed for %s %s: %s", source.value, reference_id, e)
            raise DependencyError("Income ledger unavailable; the operation was rolled back") from e

        entry = IncomeEntry.model_validate(row)
        logger.info(
            "Posted income %s cents (%s, reference %s)",
            entry.amount_cents, entry.source.value, entry.reference_id,
        )
        return entry

    def booked_in(self, tx: Transaction, reference_id: UUID) -> int:
        """Net income in cents already posted for a reference, seen from an open transaction."""
        try:
            row = tx.execute_single(
                """
                SELECT COALESCE(SUM(amount_cents), 0) AS booked
                FROM income_entries
                WHERE reference_id = %s
                """,
                (reference_id,)
            )
        except psycopg2.Error as e:
            logger.error("Income lookup failed for reference %s: %s", reference_id, e)
            raise DependencyError("Income ledger unavailable; the operation was rolled back") from e

        return int(row["booked"])

    def list_recent(self, limit: int = 50, offset: int = 0) -> list[IncomeEntry]:
        """
        List income entries.

        Returns:
            Entries ordered by creation time DESC
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM income_entries
            ORDER BY created_at DESC
            LIMIT %s OFFSET %s
            """,
            (limit, offset)
        )

        return [IncomeEntry.model_validate(row) for row in rows]

    def list_for_reference(self, reference_id: UUID) -> list[IncomeEntry]:
        """All entries posted for one deposit or receivable, oldest first."""
        rows = self.postgres.execute(
            """
            SELECT * FROM income_entries
            WHERE reference_id = %s
            ORDER BY created_at ASC
            """,
            (reference_id,)
        )

        return [IncomeEntry.model_validate(row) for row in rows]

    def total_between(self, start: datetime, end: datetime) -> int:
        """Net income in cents for [start, end)."""
        total = self.postgres.execute_scalar(
            """
            SELECT COALESCE(SUM(amount_cents), 0)
            FROM income_entries
            WHERE created_at >= %s AND created_at < %s
            """,
            (start, end)
        )
        return int(total)
