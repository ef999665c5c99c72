"""Activity feed models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class ActivityKind(str, Enum):
    """Notable ledger events shown on the dashboard feed."""

    DEPOSIT_ADDED = "deposit_added"
    DEPOSIT_UPDATED = "deposit_updated"
    DEPOSIT_APPLIED = "deposit_applied"
    DEPOSIT_REFUNDED = "deposit_refunded"
    DEPOSIT_DELETED = "deposit_deleted"
    RECEIVABLE_ADDED = "receivable_added"
    RECEIVABLE_UPDATED = "receivable_updated"
    RECEIVABLE_DELETED = "receivable_deleted"
    RECEIVABLE_PAID = "receivable_paid"


class Activity(BaseModel):
    """One feed entry."""

    id: UUID
    kind: ActivityKind
    description: str
    entity_id: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}
