"""Customer reference model.

Customers are owned by the customer module. The ledger only resolves them
by id to attribute deposits and receivables.
"""

from uuid import UUID

from pydantic import BaseModel


class Customer(BaseModel):
    """The slice of a customer the ledger reads."""

    id: UUID
    name: str

    model_config = {"from_attributes": True}
