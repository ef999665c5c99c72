"""Activity feed: append-only display log of notable ledger events."""

import logging
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.models import Activity, ActivityKind
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class ActivityService:
    """Service for the activity feed."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def record(self, kind: ActivityKind, description: str, entity_id: UUID | None = None) -> Activity:
        """
        Append a feed entry.

        Args:
            kind: Event kind
            description: Human-readable line for the feed
            entity_id: Deposit or receivable the entry is about

        Returns:
            Created activity
        """
        row = self.postgres.execute_returning(
            """
            INSERT INTO activities (id, kind, description, entity_id, created_at)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING *
            """,
            (uuid4(), kind.value, description, entity_id, now_utc())
        )[0]

        return Activity.model_validate(row)

    def list_recent(self, limit: int = 20) -> list[Activity]:
        """
        List the newest feed entries.

        Returns:
            Activities ordered by creation time DESC
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM activities
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (limit,)
        )

        return [Activity.model_validate(row) for row in rows]
