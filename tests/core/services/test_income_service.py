"""Tests for IncomeService and ActivityService."""

from datetime import timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import psycopg2
import pytest

from core.exceptions import DependencyError
from core.models import ActivityKind, IncomeSource
from core.services.income_service import IncomeService
from utils.timezone import now_utc


@pytest.fixture
def income_unit():
    return IncomeService(MagicMock(name="postgres"))


class TestPostUnit:

    def test_zero_amount_rejected(self, income_unit):
        with pytest.raises(ValueError, match="zero"):
            income_unit.post(MagicMock(), amount_cents=0, source=IncomeSource.DEPOSIT, reference_id=uuid4())

    def test_database_error_becomes_dependency_error(self, income_unit):
        tx = MagicMock()
        tx.execute_returning.side_effect = psycopg2.OperationalError("server closed the connection")

        with pytest.raises(DependencyError, match="rolled back"):
            income_unit.post(tx, amount_cents=100, source=IncomeSource.DEPOSIT, reference_id=uuid4())

    def test_booked_in_lookup_error_becomes_dependency_error(self, income_unit):
        tx = MagicMock()
        tx.execute_single.side_effect = psycopg2.OperationalError("server closed the connection")

        with pytest.raises(DependencyError):
            income_unit.booked_in(tx, uuid4())


class TestIncomeLedger:

    def test_post_within_transaction(self, db_income, clean_db, test_customer_id):
        reference = uuid4()

        with clean_db.transaction() as tx:
            entry = db_income.post(
                tx, amount_cents=30000, source=IncomeSource.DEPOSIT,
                reference_id=reference, customer_id=test_customer_id, description="Deposit",
            )

        assert entry.amount == "300.00"
        assert db_income.list_for_reference(reference)[0].id == entry.id

    def test_post_rolls_back_with_transaction(self, db_income, clean_db):
        reference = uuid4()

        with pytest.raises(RuntimeError):
            with clean_db.transaction() as tx:
                db_income.post(tx, amount_cents=100, source=IncomeSource.DEPOSIT, reference_id=reference)
                raise RuntimeError("caller failed")

        assert db_income.list_for_reference(reference) == []

    def test_total_between_nets_reversals(self, db_income, clean_db):
        reference = uuid4()
        with clean_db.transaction() as tx:
            db_income.post(tx, amount_cents=30000, source=IncomeSource.DEPOSIT, reference_id=reference)
            db_income.post(tx, amount_cents=-30000, source=IncomeSource.DEPOSIT_REFUND, reference_id=reference)
            db_income.post(tx, amount_cents=5000, source=IncomeSource.RECEIVABLE_PAYMENT, reference_id=uuid4())

        now = now_utc()
        assert db_income.total_between(now - timedelta(hours=1), now + timedelta(hours=1)) == 5000
        assert db_income.total_between(now + timedelta(hours=1), now + timedelta(hours=2)) == 0

    def test_list_recent_newest_first(self, db_income, clean_db):
        with clean_db.transaction() as tx:
            db_income.post(tx, amount_cents=100, source=IncomeSource.DEPOSIT, reference_id=uuid4())
        with clean_db.transaction() as tx:
            db_income.post(tx, amount_cents=200, source=IncomeSource.DEPOSIT, reference_id=uuid4())

        assert [e.amount_cents for e in db_income.list_recent()] == [200, 100]

    def test_booked_in_nets_entries_for_one_reference(self, db_income, clean_db):
        reference = uuid4()
        with clean_db.transaction() as tx:
            db_income.post(tx, amount_cents=50000, source=IncomeSource.DEPOSIT, reference_id=reference)
            db_income.post(tx, amount_cents=-10000, source=IncomeSource.DEPOSIT, reference_id=reference)
            db_income.post(tx, amount_cents=700, source=IncomeSource.DEPOSIT, reference_id=uuid4())

            assert db_income.booked_in(tx, reference) == 40000
            assert db_income.booked_in(tx, uuid4()) == 0


class TestActivityFeed:

    def test_record_and_list(self, db_activity):
        entity_id = uuid4()
        db_activity.record(ActivityKind.DEPOSIT_ADDED, "Deposit of 300.00 recorded", entity_id=entity_id)
        db_activity.record(ActivityKind.DEPOSIT_APPLIED, "Deposit of 300.00 applied", entity_id=entity_id)

        feed = db_activity.list_recent()

        assert [a.kind for a in feed] == [ActivityKind.DEPOSIT_APPLIED, ActivityKind.DEPOSIT_ADDED]

    def test_list_respects_limit(self, db_activity):
        for i in range(3):
            db_activity.record(ActivityKind.RECEIVABLE_ADDED, f"Receivable {i}")

        assert len(db_activity.list_recent(limit=2)) == 2
