"""
Deposit service: customer prepayments.

A deposit is either a full payment (no declared total, or total == amount)
or a partial payment against a larger declared total. A partial deposit
carries a companion receivable for the remainder, linked by deposit_id.

Income recognition targets, per deposit state:
- active full payment: the amount (posted when the deposit is recorded)
- active partial payment: nothing
- applied: the amount
- refunded: nothing

Every change posts the difference between the target and the net income
already booked for the deposit, so edits between full and partial and
amount changes never double-count or reverse money that was not booked.
Income entries are written in the same transaction as the deposit change.
Refunding a partial deposit cancels its open companion receivable.
"""

import logging
from datetime import timedelta
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger, AuditAction, compute_changes
from core.config import LedgerConfig
from core.event_bus import EventBus
from core.events import (
    DepositCreated, DepositUpdated, DepositApplied, DepositRefunded, DepositDeleted,
    LedgerEvent, ReceivableCreated, ReceivableUpdated, ReceivableDeleted,
)
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.models import (
    Deposit, DepositCreate, DepositUpdate, DepositFilter, DepositStatus,
    IncomeSource, Receivable,
)
from core.money import format_cents, to_cents
from core.services.customer_directory import CustomerDirectory
from core.services.income_service import IncomeService
from core.services.receipt_store import ReceiptStore
from core.services.receivable_service import ReceivableService
from core.services.transactions import ledger_transaction
from core.status import ReceivableStatus, check_deposit_transition, derive_status, is_closed
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_DERIVED_FIELDS = {"amount", "total_amount", "remainder"}


def _audit_dump(deposit: Deposit) -> dict:
    return deposit.model_dump(mode="json", exclude=_DERIVED_FIELDS)


def _check_amounts(amount_cents: int, total_cents: int | None) -> None:
    if amount_cents <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")
    if total_cents is not None and total_cents < amount_cents:
        raise ValidationError(
            "Total amount cannot be less than the amount received", field="total_amount"
        )


class DepositService:
    """Service for deposit operations."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        customers: CustomerDirectory,
        receivables: ReceivableService,
        income: IncomeService,
        receipts: ReceiptStore,
        config: LedgerConfig,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.customers = customers
        self.receivables = receivables
        self.income = income
        self.receipts = receipts
        self.config = config

    def create(self, data: DepositCreate) -> Deposit:
        """
        Record a deposit.

        Args:
            data: Deposit creation data. A status other than ACTIVE runs the
                apply/refund effects in the same transaction.

        Returns:
            Created deposit

        Raises:
            ValidationError: Amount not positive, total below amount, unknown
                customer or receipt
            DependencyError: Income ledger or database unavailable
        """
        amount_cents = to_cents(data.amount)
        total_cents = to_cents(data.total_amount) if data.total_amount is not None else None
        _check_amounts(amount_cents, total_cents)

        customer = self.customers.require(data.customer_id)
        self.receipts.require(data.receipt_ref)

        events: list[LedgerEvent] = []
        now = now_utc()

        with ledger_transaction(self.postgres) as tx:
            row = tx.execute_returning(
                """
                INSERT INTO deposits (
                    id, customer_id, amount_cents, total_amount_cents,
                    description, status, receipt_ref,
                    created_at, updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(), data.customer_id, amount_cents, total_cents,
                    data.description, DepositStatus.ACTIVE.value, data.receipt_ref,
                    now, now
                )
            )[0]
            deposit = Deposit.model_validate(row)

            self.audit.log_change(
                entity_type="deposit",
                entity_id=deposit.id,
                action=AuditAction.CREATE,
                changes={"created": _audit_dump(deposit)},
                tx=tx,
            )

            if deposit.is_full_payment:
                self.income.post(
                    tx,
                    amount_cents=amount_cents,
                    source=IncomeSource.DEPOSIT,
                    reference_id=deposit.id,
                    customer_id=deposit.customer_id,
                    description=f"Deposit from {customer.name}",
                )
            else:
                companion = self._insert_companion(tx, deposit, customer.name)
                events.append(ReceivableCreated.create(receivable=companion))

            if data.status != DepositStatus.ACTIVE:
                deposit, transition_events = self._transition_in(tx, deposit, data.status)
                events.extend(transition_events)

        logger.info(
            "Created deposit %s for %s cents (%s)",
            deposit.id, amount_cents, "full" if deposit.is_full_payment else "partial",
        )
        self._publish([DepositCreated.create(deposit=deposit), *events])

        return deposit

    def get_by_id(self, deposit_id: UUID) -> Deposit | None:
        """
        Get deposit by ID.

        Returns:
            Deposit if found, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM deposits WHERE id = %s",
            (deposit_id,)
        )

        if row is None:
            return None

        return Deposit.model_validate(row)

    def update(self, deposit_id: UUID, data: DepositUpdate) -> Deposit:
        """
        Update deposit fields.

        Amounts can only change while the deposit is active. An amount
        change re-syncs the companion receivable and posts the income
        difference against what is already booked. A status in the patch
        goes through apply/refund.

        Raises:
            NotFoundError: If deposit not found
            ValidationError: Invalid merged amounts, remainder below what the
                companion receivable has already collected, unknown receipt
            ConflictError: Amount change on a closed deposit, or a status
                transition that is not allowed
        """
        updates = data.model_dump(exclude_unset=True)
        if "receipt_ref" in updates:
            self.receipts.require(updates["receipt_ref"])

        events: list[LedgerEvent] = []

        with ledger_transaction(self.postgres) as tx:
            current = self._lock_in(tx, deposit_id)
            if current is None:
                raise NotFoundError("deposit", deposit_id)

            amount_cents = current.amount_cents
            total_cents = current.total_amount_cents
            amounts_changed = False

            if updates.get("amount") is not None:
                amount_cents = to_cents(updates["amount"])
            if "total_amount" in updates:
                total = updates["total_amount"]
                total_cents = to_cents(total) if total is not None else None

            if (amount_cents, total_cents) != (current.amount_cents, current.total_amount_cents):
                if current.status != DepositStatus.ACTIVE:
                    raise ConflictError(
                        f"Amounts of a {current.status.value} deposit cannot be changed"
                    )
                _check_amounts(amount_cents, total_cents)
                amounts_changed = True

            description = updates["description"] if "description" in updates else current.description
            receipt_ref = updates["receipt_ref"] if "receipt_ref" in updates else current.receipt_ref

            row = tx.execute_returning(
                """
                UPDATE deposits
                SET amount_cents = %s, total_amount_cents = %s, description = %s,
                    receipt_ref = %s, updated_at = %s
                WHERE id = %s
                RETURNING *
                """,
                (amount_cents, total_cents, description, receipt_ref, now_utc(), deposit_id)
            )[0]
            updated = Deposit.model_validate(row)

            changes = compute_changes(_audit_dump(current), _audit_dump(updated))
            if changes:
                self.audit.log_change(
                    entity_type="deposit",
                    entity_id=deposit_id,
                    action=AuditAction.UPDATE,
                    changes=changes,
                    tx=tx,
                )

            if amounts_changed:
                events.extend(self._sync_companion(tx, updated))
                self._recognise_in(
                    tx, updated, IncomeSource.DEPOSIT, "Deposit amount adjusted"
                )

            target = updates.get("status")
            if target is not None and target != updated.status:
                updated, transition_events = self._transition_in(tx, updated, target)
                events.extend(transition_events)

        self._publish([DepositUpdated.create(deposit=updated), *events])

        return updated

    def apply(self, deposit_id: UUID, reference: str | None = None) -> Deposit:
        """
        Apply a deposit to an invoice or order.

        Args:
            deposit_id: Deposit UUID
            reference: What the deposit was applied to (invoice number etc.)

        Raises:
            NotFoundError: If deposit not found
            ConflictError: If the deposit is not active
        """
        with ledger_transaction(self.postgres) as tx:
            current = self._lock_in(tx, deposit_id)
            if current is None:
                raise NotFoundError("deposit", deposit_id)

            deposit, events = self._transition_in(tx, current, DepositStatus.APPLIED, reference)

        self._publish(events)

        return deposit

    def refund(self, deposit_id: UUID) -> Deposit:
        """
        Return a deposit to the customer.

        Raises:
            NotFoundError: If deposit not found
            ConflictError: If the deposit is not active
        """
        with ledger_transaction(self.postgres) as tx:
            current = self._lock_in(tx, deposit_id)
            if current is None:
                raise NotFoundError("deposit", deposit_id)

            deposit, events = self._transition_in(tx, current, DepositStatus.REFUNDED)

        self._publish(events)

        return deposit

    def delete(self, deposit_id: UUID) -> None:
        """
        Hard delete a deposit.

        Income already posted is not reversed. A companion receivable is
        kept with its deposit link cleared.

        Raises:
            NotFoundError: If deposit not found
        """
        with ledger_transaction(self.postgres) as tx:
            current = self._lock_in(tx, deposit_id)
            if current is None:
                raise NotFoundError("deposit", deposit_id)

            tx.execute("DELETE FROM deposits WHERE id = %s", (deposit_id,))

            self.audit.log_change(
                entity_type="deposit",
                entity_id=deposit_id,
                action=AuditAction.DELETE,
                changes={"deleted": _audit_dump(current)},
                tx=tx,
            )

        logger.info("Deleted deposit %s", deposit_id)
        self.event_bus.publish(DepositDeleted.create(deposit=current))

    def list_all(self, filter: DepositFilter | None = None) -> list[Deposit]:
        """
        List deposits.

        Args:
            filter: Customer and status filters, limit/offset

        Returns:
            Deposits ordered by creation time DESC
        """
        filter = filter or DepositFilter()

        conditions = []
        params: list = []

        if filter.customer_id is not None:
            conditions.append("customer_id = %s")
            params.append(filter.customer_id)

        if filter.status is not None:
            conditions.append("status = %s")
            params.append(filter.status.value)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        limit = min(filter.limit, self.config.list_limit_max)
        params.extend([limit, filter.offset])

        rows = self.postgres.execute(
            f"""
            SELECT * FROM deposits
            {where}
            ORDER BY created_at DESC
            LIMIT %s OFFSET %s
            """,
            tuple(params)
        )

        return [Deposit.model_validate(row) for row in rows]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _lock_in(self, tx: Transaction, deposit_id: UUID) -> Deposit | None:
        row = tx.execute_single(
            "SELECT * FROM deposits WHERE id = %s FOR UPDATE",
            (deposit_id,)
        )

        if row is None:
            return None

        return Deposit.model_validate(row)

    def _insert_companion(self, tx: Transaction, deposit: Deposit, customer_name: str) -> Receivable:
        """Receivable for the unpaid part of a partial deposit."""
        due_date = self.receivables.today() + timedelta(days=self.config.remainder_grace_days)
        description = f"Remainder of deposit from {customer_name}"
        if deposit.description:
            description = f"{description}: {deposit.description}"

        return self.receivables.insert_in(
            tx,
            customer_id=deposit.customer_id,
            amount_cents=deposit.remainder_cents,
            due_date=due_date,
            description=description[:2000],
            deposit_id=deposit.id,
        )

    def _sync_companion(self, tx: Transaction, deposit: Deposit) -> list[LedgerEvent]:
        """Bring the companion receivable in line with the deposit's new remainder."""
        remainder = deposit.remainder_cents
        companion = self.receivables.find_for_deposit_in(tx, deposit.id)

        if companion is None:
            if remainder == 0:
                return []
            customer = self.customers.require(deposit.customer_id)
            created = self._insert_companion(tx, deposit, customer.name)
            return [ReceivableCreated.create(receivable=created)]

        if remainder < companion.paid_amount_cents:
            raise ValidationError(
                f"Remainder cannot be less than the {format_cents(companion.paid_amount_cents)} "
                "already collected on it",
                field="total_amount",
            )

        if remainder == 0:
            # paid_amount_cents is 0 here, otherwise the check above fails
            self.receivables.delete_in(tx, companion)
            return [ReceivableDeleted.create(receivable=companion)]

        status = derive_status(
            remainder, companion.paid_amount_cents, companion.due_date,
            self.receivables.today(), current=companion.status,
        )
        updated = self.receivables.write_in(
            tx, companion, remainder, companion.due_date,
            companion.description, companion.notes, status,
        )
        return [ReceivableUpdated.create(receivable=updated)]

    def _transition_in(
        self,
        tx: Transaction,
        deposit: Deposit,
        target: DepositStatus,
        reference: str | None = None,
    ) -> tuple[Deposit, list[LedgerEvent]]:
        """
        Move a locked deposit to APPLIED or REFUNDED with its income effect.

        Returns:
            The updated deposit and the events to publish after commit
        """
        check_deposit_transition(deposit.status, target)

        row = tx.execute_returning(
            """
            UPDATE deposits
            SET status = %s, applied_reference = COALESCE(%s, applied_reference), updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (target.value, reference, now_utc(), deposit.id)
        )[0]
        updated = Deposit.model_validate(row)

        self.audit.log_change(
            entity_type="deposit",
            entity_id=deposit.id,
            action=AuditAction.UPDATE,
            changes=compute_changes(_audit_dump(deposit), _audit_dump(updated)),
            tx=tx,
        )

        if target == DepositStatus.APPLIED:
            self._recognise_in(tx, updated, IncomeSource.DEPOSIT, "Deposit applied")
            events: list[LedgerEvent] = [DepositApplied.create(deposit=updated)]
        else:
            self._recognise_in(tx, updated, IncomeSource.DEPOSIT_REFUND, "Deposit refunded")
            events = [DepositRefunded.create(deposit=updated)]
            events.extend(self._cancel_companion(tx, updated))

        logger.info("Deposit %s %s -> %s", deposit.id, deposit.status.value, target.value)
        return updated, events

    @staticmethod
    def _recognised_target(deposit: Deposit) -> int:
        """Income in cents the deposit should have booked in its current state."""
        if deposit.status == DepositStatus.APPLIED:
            return deposit.amount_cents
        if deposit.status == DepositStatus.ACTIVE and deposit.is_full_payment:
            return deposit.amount_cents
        return 0

    def _recognise_in(
        self, tx: Transaction, deposit: Deposit, source: IncomeSource, description: str
    ) -> None:
        """Post the difference between the target and the income already booked."""
        delta = self._recognised_target(deposit) - self.income.booked_in(tx, deposit.id)
        if delta == 0:
            return

        self.income.post(
            tx,
            amount_cents=delta,
            source=source,
            reference_id=deposit.id,
            customer_id=deposit.customer_id,
            description=description,
        )

    def _cancel_companion(self, tx: Transaction, deposit: Deposit) -> list[LedgerEvent]:
        """Close the open companion receivable of a refunded deposit."""
        companion = self.receivables.find_for_deposit_in(tx, deposit.id)
        if companion is None or is_closed(companion.status):
            return []

        cancelled = self.receivables.write_in(
            tx, companion, companion.amount_cents, companion.due_date,
            companion.description, companion.notes, ReceivableStatus.CANCELLED,
        )
        logger.info("Cancelled receivable %s with refunded deposit %s", companion.id, deposit.id)
        return [ReceivableUpdated.create(receivable=cancelled)]

    def _publish(self, events: list[LedgerEvent]) -> None:
        for event in events:
            self.event_bus.publish(event)
