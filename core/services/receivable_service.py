"""
Receivable service: amounts owed by customers.

Handles create, read, update, hard delete and listing. Payments are applied
by PaymentService, which shares this service's row-locking helpers.

Every mutation locks the receivable row (SELECT ... FOR UPDATE) inside a
ledger transaction, so concurrent edits and payments on the same receivable
are serialized.
"""

import logging
from datetime import date
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import LedgerConfig
from core.event_bus import EventBus
from core.events import ReceivableCreated, ReceivableUpdated, ReceivableDeleted
from core.exceptions import NotFoundError, ValidationError
from core.models import (
    Receivable, ReceivableCreate, ReceivableUpdate, ReceivableFilter, ReceivableStatus,
)
from core.money import format_cents, to_cents
from core.services.customer_directory import CustomerDirectory
from core.services.transactions import ledger_transaction
from core.status import derive_status, initial_status
from utils.timezone import business_today, now_utc

logger = logging.getLogger(__name__)

# Not part of the stored row; excluded from audit diffs
_DERIVED_FIELDS = {"effective_status", "amount", "paid_amount", "remaining"}


def _audit_dump(receivable: Receivable) -> dict:
    return receivable.model_dump(mode="json", exclude=_DERIVED_FIELDS)


class ReceivableService:
    """Service for receivable operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        customers: CustomerDirectory,
        config: LedgerConfig,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.customers = customers
        self.config = config

    def today(self) -> date:
        """Business calendar date used for overdue checks."""
        return business_today(self.config.business_timezone)

    def with_effective_status(self, receivable: Receivable, today: date | None = None) -> Receivable:
        """Copy of receivable with effective_status derived for today."""
        today = today or self.today()
        return receivable.model_copy(update={
            "effective_status": derive_status(
                receivable.amount_cents,
                receivable.paid_amount_cents,
                receivable.due_date,
                today,
                current=receivable.status,
            )
        })

    # -------------------------------------------------------------------------
    # Transaction-scoped helpers (used by DepositService and PaymentService)
    # -------------------------------------------------------------------------

    def insert_in(
        self,
        tx: Transaction,
        customer_id: UUID,
        amount_cents: int,
        due_date: date,
        description: str,
        paid_cents: int = 0,
        notes: str | None = None,
        deposit_id: UUID | None = None,
    ) -> Receivable:
        """
        Insert a validated receivable row and audit it within tx.

        Callers publish ReceivableCreated after the transaction commits.
        """
        now = now_utc()
        row = tx.execute_returning(
            """
            INSERT INTO receivables (
                id, customer_id, deposit_id,
                amount_cents, paid_amount_cents, due_date,
                description, notes, status,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s,
                %s, %s, %s,
                %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                uuid4(), customer_id, deposit_id,
                amount_cents, paid_cents, due_date,
                description, notes, initial_status(amount_cents, paid_cents).value,
                now, now
            )
        )[0]

        receivable = Receivable.model_validate(row)

        self.audit.log_change(
            entity_type="receivable",
            entity_id=receivable.id,
            action=AuditAction.CREATE,
            changes={"created": _audit_dump(receivable)},
            tx=tx,
        )

        return receivable

    def lock_in(self, tx: Transaction, receivable_id: UUID) -> Receivable | None:
        """Read a receivable and hold its row lock until tx ends."""
        row = tx.execute_single(
            "SELECT * FROM receivables WHERE id = %s FOR UPDATE",
            (receivable_id,)
        )

        if row is None:
            return None

        return Receivable.model_validate(row)

    def find_for_deposit_in(self, tx: Transaction, deposit_id: UUID) -> Receivable | None:
        """Lock and return the companion receivable of a partial deposit, if any."""
        row = tx.execute_single(
            "SELECT * FROM receivables WHERE deposit_id = %s FOR UPDATE",
            (deposit_id,)
        )

        if row is None:
            return None

        return Receivable.model_validate(row)

    def write_in(
        self,
        tx: Transaction,
        current: Receivable,
        amount_cents: int,
        due_date: date,
        description: str,
        notes: str | None,
        status: ReceivableStatus,
    ) -> Receivable:
        """Persist edited fields of a locked receivable and audit the diff."""
        row = tx.execute_returning(
            """
            UPDATE receivables
            SET amount_cents = %s, due_date = %s, description = %s,
                notes = %s, status = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (amount_cents, due_date, description, notes, status.value, now_utc(), current.id)
        )[0]

        updated = Receivable.model_validate(row)

        changes = compute_changes(_audit_dump(current), _audit_dump(updated))
        if changes:
            self.audit.log_change(
                entity_type="receivable",
                entity_id=current.id,
                action=AuditAction.UPDATE,
                changes=changes,
                tx=tx,
            )

        return updated

    def delete_in(self, tx: Transaction, receivable: Receivable) -> None:
        """Hard-delete a locked receivable and audit it within tx."""
        tx.execute("DELETE FROM receivables WHERE id = %s", (receivable.id,))

        self.audit.log_change(
            entity_type="receivable",
            entity_id=receivable.id,
            action=AuditAction.DELETE,
            changes={"deleted": _audit_dump(receivable)},
            tx=tx,
        )

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def create(self, data: ReceivableCreate) -> Receivable:
        """
        Create a receivable.

        Args:
            data: Receivable creation data

        Returns:
            Created receivable, stored as PAID when the initial paid amount
            covers the total, PENDING otherwise (never stored as OVERDUE)

        Raises:
            ValidationError: Amount not positive, initial paid amount out of
                range, or unknown customer
        """
        amount_cents = to_cents(data.amount)
        paid_cents = to_cents(data.paid_amount)

        if amount_cents <= 0:
            raise ValidationError("Amount must be greater than zero", field="amount")
        if paid_cents < 0:
            raise ValidationError("Paid amount cannot be negative", field="paid_amount")
        if paid_cents > amount_cents:
            raise ValidationError("Paid amount cannot exceed the amount owed", field="paid_amount")

        self.customers.require(data.customer_id)

        with ledger_transaction(self.postgres) as tx:
            receivable = self.insert_in(
                tx,
                customer_id=data.customer_id,
                amount_cents=amount_cents,
                due_date=data.due_date,
                description=data.description,
                paid_cents=paid_cents,
                notes=data.notes,
            )

        logger.info("Created receivable %s for %s cents", receivable.id, amount_cents)
        self.event_bus.publish(ReceivableCreated.create(receivable=receivable))

        return self.with_effective_status(receivable)

    def get_by_id(self, receivable_id: UUID) -> Receivable | None:
        """
        Get receivable by ID.

        Returns:
            Receivable with effective_status, or None if not found.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM receivables WHERE id = %s",
            (receivable_id,)
        )

        if row is None:
            return None

        return self.with_effective_status(Receivable.model_validate(row))

    def update(self, receivable_id: UUID, data: ReceivableUpdate) -> Receivable:
        """
        Update receivable fields.

        Status handling:
        - explicit CANCELLED in the patch wins;
        - an explicit PENDING or OVERDUE re-opens a cancelled receivable, and
          the derivation then decides between pending, overdue and paid;
        - without an explicit status, a cancelled receivable stays cancelled
          and any other is re-derived.

        Raises:
            NotFoundError: If receivable not found
            ValidationError: Amount not positive or below the paid amount, or
                explicit PAID while a balance remains
        """
        updates = data.model_dump(exclude_unset=True)
        requested = updates.get("status")

        with ledger_transaction(self.postgres) as tx:
            current = self.lock_in(tx, receivable_id)
            if current is None:
                raise NotFoundError("receivable", receivable_id)

            amount_cents = current.amount_cents
            if updates.get("amount") is not None:
                amount_cents = to_cents(updates["amount"])
                if amount_cents <= 0:
                    raise ValidationError("Amount must be greater than zero", field="amount")
            if current.paid_amount_cents > amount_cents:
                raise ValidationError(
                    f"Amount cannot be less than the {format_cents(current.paid_amount_cents)} already paid",
                    field="amount",
                )

            due_date = updates.get("due_date") or current.due_date
            description = updates.get("description") or current.description
            notes = updates["notes"] if "notes" in updates else current.notes

            if requested == ReceivableStatus.CANCELLED:
                status = ReceivableStatus.CANCELLED
            else:
                stored = current.status if requested is None else None
                status = derive_status(
                    amount_cents, current.paid_amount_cents, due_date, self.today(), current=stored
                )
                if requested == ReceivableStatus.PAID and status != ReceivableStatus.PAID:
                    raise ValidationError(
                        "A receivable becomes paid by recording payments, not by editing its status",
                        field="status",
                    )

            updated = self.write_in(tx, current, amount_cents, due_date, description, notes, status)

        self.event_bus.publish(ReceivableUpdated.create(receivable=updated))

        return self.with_effective_status(updated)

    def delete(self, receivable_id: UUID) -> None:
        """
        Hard delete a receivable and its payment history.

        Income already posted for its payments is kept.

        Raises:
            NotFoundError: If receivable not found (nothing is changed)
        """
        with ledger_transaction(self.postgres) as tx:
            current = self.lock_in(tx, receivable_id)
            if current is None:
                raise NotFoundError("receivable", receivable_id)

            self.delete_in(tx, current)

        logger.info("Deleted receivable %s", receivable_id)
        self.event_bus.publish(ReceivableDeleted.create(receivable=current))

    def list_all(self, filter: ReceivableFilter | None = None) -> list[Receivable]:
        """
        List receivables.

        Args:
            filter: Customer, derived status and due date filters

        Returns:
            Receivables ordered by due date, then creation time
        """
        filter = filter or ReceivableFilter()
        today = self.today()

        conditions = []
        params: list = []

        if filter.customer_id is not None:
            conditions.append("customer_id = %s")
            params.append(filter.customer_id)

        if filter.due_before is not None:
            conditions.append("due_date < %s")
            params.append(filter.due_before)

        if filter.status in (ReceivableStatus.PAID, ReceivableStatus.CANCELLED):
            conditions.append("status = %s")
            params.append(filter.status.value)
        elif filter.status == ReceivableStatus.OVERDUE:
            conditions.append("status NOT IN ('paid', 'cancelled') AND due_date < %s")
            params.append(today)
        elif filter.status == ReceivableStatus.PENDING:
            conditions.append("status NOT IN ('paid', 'cancelled') AND due_date >= %s")
            params.append(today)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        limit = min(filter.limit, self.config.list_limit_max)
        params.extend([limit, filter.offset])

        rows = self.postgres.execute(
            f"""
            SELECT * FROM receivables
            {where}
            ORDER BY due_date ASC, created_at ASC
            LIMIT %s OFFSET %s
            """,
            tuple(params)
        )

        return [self.with_effective_status(Receivable.model_validate(row), today) for row in rows]
