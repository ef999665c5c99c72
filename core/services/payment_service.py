"""
Payment recorder: applies customer payments to receivables.

One call is one transaction:

    lock receivable row -> idempotency check -> state/balance checks
    -> update paid amount and status -> record payment row -> post income

Two concurrent payments against the same receivable queue on the row lock;
the second one sees the first one's result. Income is posted inside the same
transaction, so a payment is never recorded without its income entry.
Activity feed and cache updates happen after commit via PaymentApplied.
"""

import logging
from uuid import UUID, uuid4

import psycopg2.errors

from clients.postgres_client import PostgresClient, Transaction
from core.audit import AuditLogger, AuditAction
from core.event_bus import EventBus
from core.events import PaymentApplied
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.models import IncomeSource, PaymentCreate, Receivable, ReceivablePayment
from core.money import format_cents, to_cents
from core.services.income_service import IncomeService
from core.services.receipt_store import ReceiptStore
from core.services.receivable_service import ReceivableService
from core.services.transactions import ledger_transaction
from core.status import derive_status, is_closed
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class PaymentService:
    """Service that records payments against receivables."""

    def __init__(
        self,
        postgres: PostgresClient,
        audit: AuditLogger,
        event_bus: EventBus,
        receivables: ReceivableService,
        income: IncomeService,
        receipts: ReceiptStore,
    ):
        self.postgres = postgres
        self.audit = audit
        self.event_bus = event_bus
        self.receivables = receivables
        self.income = income
        self.receipts = receipts

    def apply_payment(self, receivable_id: UUID, data: PaymentCreate) -> Receivable:
        """
        Apply a payment to a receivable.

        Args:
            receivable_id: Receivable UUID
            data: Amount, optional receipt_ref and optional idempotency_key

        Returns:
            Updated receivable. PAID when the payment clears the balance.
            Replaying an idempotency_key returns the receivable unchanged.

        Raises:
            ValidationError: Amount not positive, exceeds the remaining
                balance, or unknown receipt_ref
            NotFoundError: Receivable not found
            ConflictError: Receivable is paid or cancelled, or the
                idempotency_key belongs to another receivable
            DependencyError: Income ledger or database unavailable (nothing
                was applied)
        """
        amount_cents = to_cents(data.amount)
        if amount_cents <= 0:
            raise ValidationError("Payment amount must be greater than zero", field="amount")

        self.receipts.require(data.receipt_ref)
        today = self.receivables.today()

        with ledger_transaction(self.postgres) as tx:
            current = self.receivables.lock_in(tx, receivable_id)
            if current is None:
                raise NotFoundError("receivable", receivable_id)

            if data.idempotency_key is not None:
                previous = self._find_by_key(tx, data.idempotency_key)
                if previous is not None:
                    if previous.receivable_id != receivable_id:
                        raise ConflictError(
                            f"Idempotency key already used for receivable {previous.receivable_id}"
                        )
                    logger.info(
                        "Payment %s already applied to receivable %s; not applying again",
                        data.idempotency_key, receivable_id,
                    )
                    return self.receivables.with_effective_status(current, today)

            status = derive_status(
                current.amount_cents, current.paid_amount_cents, current.due_date, today,
                current=current.status,
            )
            if is_closed(status):
                raise ConflictError(f"Receivable {receivable_id} is {status.value} and accepts no payments")

            if amount_cents > current.remaining_cents:
                raise ValidationError(
                    f"Payment exceeds remaining balance of {format_cents(current.remaining_cents)}",
                    field="amount",
                )

            new_paid = current.paid_amount_cents + amount_cents
            new_status = derive_status(current.amount_cents, new_paid, current.due_date, today)

            row = tx.execute_returning(
                """
                UPDATE receivables
                SET paid_amount_cents = %s, status = %s,
                    receipt_ref = COALESCE(%s, receipt_ref), updated_at = %s
                WHERE id = %s
                RETURNING *
                """,
                (new_paid, new_status.value, data.receipt_ref, now_utc(), receivable_id)
            )[0]
            updated = Receivable.model_validate(row)

            payment = self._record_payment(tx, receivable_id, amount_cents, data)

            self.income.post(
                tx,
                amount_cents=amount_cents,
                source=IncomeSource.RECEIVABLE_PAYMENT,
                reference_id=receivable_id,
                customer_id=current.customer_id,
                description=f"Payment on receivable: {current.description}",
            )

            self.audit.log_change(
                entity_type="receivable",
                entity_id=receivable_id,
                action=AuditAction.UPDATE,
                changes={
                    "paid_amount_cents": {"old": current.paid_amount_cents, "new": new_paid},
                    "status": {"old": current.status.value, "new": new_status.value},
                    "payment_recorded": {"id": str(payment.id), "amount_cents": amount_cents},
                },
                tx=tx,
            )

        logger.info(
            "Applied payment of %s cents to receivable %s (status %s)",
            amount_cents, receivable_id, updated.status.value,
        )
        self.event_bus.publish(PaymentApplied.create(receivable=updated, amount_cents=amount_cents))

        return self.receivables.with_effective_status(updated, today)

    def list_payments(self, receivable_id: UUID) -> list[ReceivablePayment]:
        """
        Payment history of a receivable.

        Returns:
            Payments ordered by application time ASC
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM receivable_payments
            WHERE receivable_id = %s
            ORDER BY applied_at ASC
            """,
            (receivable_id,)
        )

        return [ReceivablePayment.model_validate(row) for row in rows]

    def _find_by_key(self, tx: Transaction, idempotency_key: str) -> ReceivablePayment | None:
        row = tx.execute_single(
            "SELECT * FROM receivable_payments WHERE idempotency_key = %s",
            (idempotency_key,)
        )

        if row is None:
            return None

        return ReceivablePayment.model_validate(row)

    def _record_payment(
        self, tx: Transaction, receivable_id: UUID, amount_cents: int, data: PaymentCreate
    ) -> ReceivablePayment:
        try:
            row = tx.execute_returning(
                """
                INSERT INTO receivable_payments (
                    id, receivable_id, amount_cents, receipt_ref, idempotency_key, applied_at
                ) VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (uuid4(), receivable_id, amount_cents, data.receipt_ref, data.idempotency_key, now_utc())
            )[0]
        except psycopg2.errors.UniqueViolation as e:
            # A concurrent payment committed the same key first
            logger.warning("Idempotency key %s taken concurrently: %s", data.idempotency_key, e)
            raise ConflictError(
                f"Idempotency key {data.idempotency_key} was used by a concurrent payment"
            ) from e

        return ReceivablePayment.model_validate(row)
