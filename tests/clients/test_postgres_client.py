"""Tests for PostgresClient - pooled queries and explicit transactions."""

import threading
import time

import pytest
from unittest.mock import Mock
from uuid import uuid4

from clients.postgres_client import Transaction, _convert_params


class TestConvertParams:
    """UUID parameters are sent as strings."""

    def test_converts_nested_uuids(self):
        rid = uuid4()
        assert _convert_params((rid, [rid], {"k": rid}, 5)) == (str(rid), [str(rid)], {"k": str(rid)}, 5)

    def test_none_passes_through(self):
        assert _convert_params(None) is None


class TestTransactionWrapper:
    """Transaction statements, no DB needed."""

    def test_execute_returns_rows_when_query_has_results(self):
        cursor = Mock()
        cursor.description = [("id",)]
        cursor.fetchall.return_value = [{"id": 1}]

        assert Transaction(cursor).execute("SELECT 1") == [{"id": 1}]

    def test_execute_returns_empty_list_for_statements(self):
        cursor = Mock()
        cursor.description = None

        assert Transaction(cursor).execute("DELETE FROM deposits") == []
        cursor.fetchall.assert_not_called()


class TestPostgresClientInit:
    """Connection pool initialization."""

    def test_creates_pool_with_valid_url(self, db):
        """Valid URL creates working connection pool."""
        result = db.execute_scalar("SELECT 1")
        assert result == 1


class TestExecuteMethods:
    """Query execution methods."""

    def test_execute_returns_list_of_dicts(self, db):
        """execute() returns list of row dicts."""
        results = db.execute("SELECT 1 as num, 'hello' as word")
        assert results == [{"num": 1, "word": "hello"}]

    def test_execute_empty_returns_empty_list(self, db):
        """No matching rows returns [], not None."""
        results = db.execute("SELECT 1 WHERE false")
        assert results == []

    def test_execute_single_returns_dict(self, db):
        """execute_single() returns first row as dict."""
        result = db.execute_single("SELECT 42 as answer")
        assert result == {"answer": 42}

    def test_execute_single_no_rows_returns_none(self, db):
        """execute_single() returns None for empty result."""
        result = db.execute_single("SELECT 1 WHERE false")
        assert result is None

    def test_execute_scalar_no_rows_returns_none(self, db):
        assert db.execute_scalar("SELECT 1 WHERE false") is None


class TestTransactions:
    """transaction() commit, rollback and row locking."""

    def test_commits_on_success(self, clean_db, test_customer_id):
        customer_id = uuid4()
        with clean_db.transaction() as tx:
            tx.execute("INSERT INTO customers (id, name) VALUES (%s, %s)", (customer_id, "Tx Co"))

        assert clean_db.execute_scalar("SELECT name FROM customers WHERE id = %s", (customer_id,)) == "Tx Co"

    def test_rolls_back_every_statement_on_error(self, clean_db):
        first, second = uuid4(), uuid4()

        with pytest.raises(RuntimeError, match="abort"):
            with clean_db.transaction() as tx:
                tx.execute("INSERT INTO customers (id, name) VALUES (%s, %s)", (first, "One"))
                tx.execute("INSERT INTO customers (id, name) VALUES (%s, %s)", (second, "Two"))
                raise RuntimeError("abort")

        count = clean_db.execute_scalar(
            "SELECT COUNT(*) FROM customers WHERE id IN (%s, %s)", (first, second)
        )
        assert count == 0

    def test_select_for_update_serializes_writers(self, clean_db, test_customer_id):
        """A second locker waits until the first transaction commits."""
        order = []
        first_has_lock = threading.Event()

        def first():
            with clean_db.transaction() as tx:
                tx.execute("SELECT * FROM customers WHERE id = %s FOR UPDATE", (test_customer_id,))
                first_has_lock.set()
                time.sleep(0.2)
                order.append("first")

        def second():
            first_has_lock.wait()
            with clean_db.transaction() as tx:
                tx.execute("SELECT * FROM customers WHERE id = %s FOR UPDATE", (test_customer_id,))
                order.append("second")

        threads = [threading.Thread(target=first), threading.Thread(target=second)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert order == ["first", "second"]
