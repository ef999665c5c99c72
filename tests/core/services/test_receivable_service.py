"""Unit tests for ReceivableService rules (database mocked)."""

from datetime import timedelta
from decimal import Decimal

import pytest

from core.exceptions import NotFoundError, ValidationError
from core.models import ReceivableCreate, ReceivableFilter, ReceivableStatus, ReceivableUpdate
from utils.timezone import business_today


def _row(entity, **changes) -> dict:
    row = entity.model_dump()
    row.update(changes)
    return row


def _echo_update(tx, current):
    """Make the UPDATE in write_in return the row it was asked to write."""

    def execute_returning(query, params):
        amount, due_date, description, notes, status = params[:5]
        return [_row(
            current, amount_cents=amount, due_date=due_date, description=description,
            notes=notes, status=status,
        )]

    tx.execute_returning.side_effect = execute_returning


def _published(event_bus) -> list[str]:
    return [c.args[0].__class__.__name__ for c in event_bus.publish.call_args_list]


# =============================================================================
# CREATE
# =============================================================================


class TestCreate:

    def _data(self, customer_id, **overrides):
        values = dict(
            customer_id=customer_id, amount="1000.00",
            due_date=str(business_today() + timedelta(days=30)), description="Invoice 1001",
        )
        values.update(overrides)
        return ReceivableCreate(**values)

    def test_rejects_zero_amount(self, mock_receivables, make_receivable, postgres):
        with pytest.raises(ValidationError) as exc_info:
            mock_receivables.create(self._data(make_receivable().customer_id, amount="0"))

        assert exc_info.value.field == "amount"
        postgres.transaction.assert_not_called()

    def test_rejects_paid_above_amount(self, mock_receivables, make_receivable):
        with pytest.raises(ValidationError) as exc_info:
            mock_receivables.create(self._data(
                make_receivable().customer_id, amount="100", paid_amount="100.01"
            ))

        assert exc_info.value.field == "paid_amount"

    def test_unknown_customer_is_validation_error(self, mock_receivables, customers, make_receivable, postgres):
        customers.require.side_effect = ValidationError("Customer x does not exist", field="customer_id")

        with pytest.raises(ValidationError) as exc_info:
            mock_receivables.create(self._data(make_receivable().customer_id))

        assert exc_info.value.field == "customer_id"
        postgres.transaction.assert_not_called()

    def test_stores_pending_and_publishes(self, mock_receivables, tx, audit, event_bus, make_receivable):
        stored = make_receivable(amount_cents=100000)
        tx.execute_returning.return_value = [_row(stored)]

        result = mock_receivables.create(self._data(stored.customer_id))

        params = tx.execute_returning.call_args[0][1]
        assert params[3] == 100000  # amount_cents
        assert params[4] == 0  # paid_amount_cents
        assert params[8] == "pending"
        assert audit.log_change.call_args.kwargs["tx"] is tx
        assert _published(event_bus) == ["ReceivableCreated"]
        assert result.effective_status == ReceivableStatus.PENDING

    def test_fully_paid_on_creation_is_stored_paid(self, mock_receivables, tx, make_receivable):
        stored = make_receivable(amount_cents=5000, paid_amount_cents=5000, status=ReceivableStatus.PAID)
        tx.execute_returning.return_value = [_row(stored)]

        mock_receivables.create(self._data(stored.customer_id, amount="50", paid_amount="50"))

        assert tx.execute_returning.call_args[0][1][8] == "paid"

    def test_past_due_date_is_stored_pending_but_reads_overdue(self, mock_receivables, tx, make_receivable):
        past = business_today() - timedelta(days=3)
        stored = make_receivable(due_date=past)
        tx.execute_returning.return_value = [_row(stored)]

        result = mock_receivables.create(self._data(stored.customer_id, due_date=str(past)))

        assert tx.execute_returning.call_args[0][1][8] == "pending"
        assert result.effective_status == ReceivableStatus.OVERDUE


# =============================================================================
# UPDATE
# =============================================================================


class TestUpdate:

    def test_unknown_id_raises_not_found(self, mock_receivables, tx, event_bus, make_receivable):
        tx.execute_single.return_value = None

        with pytest.raises(NotFoundError):
            mock_receivables.update(make_receivable().id, ReceivableUpdate(notes="x"))

        event_bus.publish.assert_not_called()

    def test_locks_the_row(self, mock_receivables, tx, make_receivable):
        current = make_receivable()
        tx.execute_single.return_value = _row(current)
        _echo_update(tx, current)

        mock_receivables.update(current.id, ReceivableUpdate(notes="called customer"))

        assert "FOR UPDATE" in tx.execute_single.call_args[0][0]

    def test_amount_below_paid_is_rejected(self, mock_receivables, tx, make_receivable):
        current = make_receivable(amount_cents=100000, paid_amount_cents=60000)
        tx.execute_single.return_value = _row(current)

        with pytest.raises(ValidationError, match="600.00 already paid") as exc_info:
            mock_receivables.update(current.id, ReceivableUpdate(amount=Decimal("500")))

        assert exc_info.value.field == "amount"
        tx.execute_returning.assert_not_called()

    def test_lowering_amount_to_paid_marks_paid(self, mock_receivables, tx, make_receivable):
        current = make_receivable(amount_cents=100000, paid_amount_cents=60000)
        tx.execute_single.return_value = _row(current)
        _echo_update(tx, current)

        result = mock_receivables.update(current.id, ReceivableUpdate(amount=Decimal("600")))

        assert result.status == ReceivableStatus.PAID

    def test_explicit_cancel_wins(self, mock_receivables, tx, make_receivable):
        current = make_receivable(paid_amount_cents=0)
        tx.execute_single.return_value = _row(current)
        _echo_update(tx, current)

        result = mock_receivables.update(current.id, ReceivableUpdate(status=ReceivableStatus.CANCELLED))

        assert result.status == ReceivableStatus.CANCELLED
        assert result.effective_status == ReceivableStatus.CANCELLED

    def test_cancelled_stays_cancelled_on_plain_edit(self, mock_receivables, tx, make_receivable):
        current = make_receivable(status=ReceivableStatus.CANCELLED)
        tx.execute_single.return_value = _row(current)
        _echo_update(tx, current)

        result = mock_receivables.update(current.id, ReceivableUpdate(notes="archived"))

        assert result.status == ReceivableStatus.CANCELLED

    def test_explicit_pending_reopens_cancelled(self, mock_receivables, tx, make_receivable):
        current = make_receivable(
            status=ReceivableStatus.CANCELLED, due_date=business_today() - timedelta(days=5)
        )
        tx.execute_single.return_value = _row(current)
        _echo_update(tx, current)

        result = mock_receivables.update(current.id, ReceivableUpdate(status=ReceivableStatus.PENDING))

        # Re-derived after reopening: the due date has passed
        assert result.status == ReceivableStatus.OVERDUE

    def test_explicit_paid_with_balance_is_rejected(self, mock_receivables, tx, make_receivable):
        current = make_receivable(amount_cents=1000, paid_amount_cents=100)
        tx.execute_single.return_value = _row(current)

        with pytest.raises(ValidationError) as exc_info:
            mock_receivables.update(current.id, ReceivableUpdate(status=ReceivableStatus.PAID))

        assert exc_info.value.field == "status"

    def test_moving_due_date_recomputes_status(self, mock_receivables, tx, make_receivable):
        current = make_receivable(
            status=ReceivableStatus.OVERDUE, due_date=business_today() - timedelta(days=1)
        )
        tx.execute_single.return_value = _row(current)
        _echo_update(tx, current)

        result = mock_receivables.update(
            current.id, ReceivableUpdate(due_date=business_today() + timedelta(days=7))
        )

        assert result.status == ReceivableStatus.PENDING

    def test_publishes_after_commit(self, mock_receivables, tx, event_bus, make_receivable):
        current = make_receivable()
        tx.execute_single.return_value = _row(current)
        _echo_update(tx, current)

        mock_receivables.update(current.id, ReceivableUpdate(description="Invoice 1001 (revised)"))

        assert _published(event_bus) == ["ReceivableUpdated"]


# =============================================================================
# DELETE / LIST
# =============================================================================


class TestDelete:

    def test_unknown_id_changes_nothing(self, mock_receivables, tx, audit, event_bus, make_receivable):
        tx.execute_single.return_value = None

        with pytest.raises(NotFoundError):
            mock_receivables.delete(make_receivable().id)

        tx.execute.assert_not_called()
        audit.log_change.assert_not_called()
        event_bus.publish.assert_not_called()

    def test_deletes_audits_and_publishes(self, mock_receivables, tx, audit, event_bus, make_receivable):
        current = make_receivable()
        tx.execute_single.return_value = _row(current)

        mock_receivables.delete(current.id)

        assert "DELETE FROM receivables" in tx.execute.call_args[0][0]
        assert audit.log_change.call_args.kwargs["changes"]["deleted"]["id"] == str(current.id)
        assert _published(event_bus) == ["ReceivableDeleted"]


class TestListAll:

    def test_overdue_filter_uses_today(self, mock_receivables, postgres):
        postgres.execute.return_value = []

        mock_receivables.list_all(ReceivableFilter(status=ReceivableStatus.OVERDUE))

        query, params = postgres.execute.call_args[0]
        assert "due_date < %s" in query
        assert "NOT IN ('paid', 'cancelled')" in query
        assert params[0] == business_today()

    def test_orders_by_due_date_then_creation(self, mock_receivables, postgres):
        postgres.execute.return_value = []

        mock_receivables.list_all()

        assert "ORDER BY due_date ASC, created_at ASC" in postgres.execute.call_args[0][0]

    def test_limit_is_capped(self, mock_receivables, postgres, config):
        postgres.execute.return_value = []

        mock_receivables.list_all(ReceivableFilter(limit=10_000))

        params = postgres.execute.call_args[0][1]
        assert params[-2] == config.list_limit_max

    def test_rows_carry_effective_status(self, mock_receivables, postgres, make_receivable):
        stale = make_receivable(status=ReceivableStatus.PENDING, due_date=business_today() - timedelta(days=1))
        postgres.execute.return_value = [_row(stale)]

        [result] = mock_receivables.list_all()

        assert result.status == ReceivableStatus.PENDING
        assert result.effective_status == ReceivableStatus.OVERDUE
