"""Read-only lookups into the customer module's table."""

from uuid import UUID

from clients.postgres_client import PostgresClient
from core.exceptions import ValidationError
from core.models import Customer


class CustomerDirectory:
    """Resolves customer ids for attribution. Never writes customers."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def resolve(self, customer_id: UUID) -> Customer | None:
        """
        Look up a customer.

        Returns:
            Customer if the id exists, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT id, name FROM customers WHERE id = %s",
            (customer_id,)
        )

        if row is None:
            return None

        return Customer.model_validate(row)

    def require(self, customer_id: UUID) -> Customer:
        """
        Look up a customer that a new ledger entry will reference.

        Raises:
            ValidationError: If the id does not resolve (field: customer_id)
        """
        customer = self.resolve(customer_id)
        if customer is None:
            raise ValidationError(f"Customer {customer_id} does not exist", field="customer_id")
        return customer
