"""Shared test fixtures for the ledger test suite."""

import pytest
from datetime import date, timedelta
from uuid import UUID, uuid4
from pathlib import Path

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from core.models import Deposit, DepositStatus, Receivable, ReceivableStatus
from utils.timezone import now_utc
from utils.user_context import user_context, clear_current_user_id


# =============================================================================
# TEST USER CONSTANTS
# =============================================================================

# Actor forwarded by the gateway in API tests
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")

# Customer rows created by the clean_db fixture
TEST_CUSTOMER_ID = UUID("00000000-0000-0000-0000-0000000000c1")
TEST_CUSTOMER_NAME = "Acme Trading"

SCHEMA_PATH = Path(__file__).parent.parent / "schema" / "ledger.sql"

LEDGER_TABLES = (
    "audit_log, activities, income_entries, receivable_payments, "
    "receivables, deposits, customers"
)


# =============================================================================
# USER CONTEXT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def reset_user_context():
    """Ensure clean user context before and after each test."""
    clear_current_user_id()
    yield
    clear_current_user_id()


@pytest.fixture
def test_user_id() -> UUID:
    """The primary test user's ID."""
    return TEST_USER_ID


@pytest.fixture
def as_test_user(test_user_id):
    """Context manager that sets primary test user context."""
    with user_context(test_user_id):
        yield test_user_id


# =============================================================================
# IN-MEMORY ENTITY FACTORIES (no DB needed)
# =============================================================================


@pytest.fixture
def make_receivable():
    """Build a Receivable entity with sensible defaults."""

    def _make(**overrides) -> Receivable:
        now = now_utc()
        values = dict(
            id=uuid4(),
            customer_id=TEST_CUSTOMER_ID,
            deposit_id=None,
            amount_cents=100000,
            paid_amount_cents=0,
            due_date=date.today() + timedelta(days=10),
            description="Invoice 1001",
            notes=None,
            status=ReceivableStatus.PENDING,
            receipt_ref=None,
            created_at=now,
            updated_at=now,
        )
        values.update(overrides)
        return Receivable(**values)

    return _make


@pytest.fixture
def make_deposit():
    """Build a Deposit entity with sensible defaults."""

    def _make(**overrides) -> Deposit:
        now = now_utc()
        values = dict(
            id=uuid4(),
            customer_id=TEST_CUSTOMER_ID,
            amount_cents=30000,
            total_amount_cents=None,
            description="Advance for order 42",
            status=DepositStatus.ACTIVE,
            receipt_ref=None,
            applied_reference=None,
            created_at=now,
            updated_at=now,
        )
        values.update(overrides)
        return Deposit(**values)

    return _make


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """
    Session-scoped PostgresClient with the ledger schema applied.

    Skips the requesting test when Vault or PostgreSQL is not reachable.
    """
    import psycopg2
    from clients.postgres_client import PostgresClient
    from clients.vault_client import VaultError, get_database_url

    try:
        client = PostgresClient(get_database_url())
    except (ValueError, KeyError, VaultError, psycopg2.OperationalError) as e:
        pytest.skip(f"Ledger database not available: {e}")

    client.execute(SCHEMA_PATH.read_text())
    yield client
    client.close()


@pytest.fixture
def clean_db(db):
    """Empty ledger tables with one known customer."""
    db.execute(f"TRUNCATE {LEDGER_TABLES} CASCADE")
    db.execute(
        "INSERT INTO customers (id, name) VALUES (%s, %s)",
        (TEST_CUSTOMER_ID, TEST_CUSTOMER_NAME),
    )
    yield db


@pytest.fixture
def test_customer_id(clean_db) -> UUID:
    return TEST_CUSTOMER_ID


# =============================================================================
# VALKEY FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def valkey():
    """Session-scoped ValkeyClient. Skips when Valkey is not reachable."""
    import redis
    from clients.valkey_client import ValkeyClient
    from clients.vault_client import VaultError, get_valkey_url

    try:
        client = ValkeyClient(get_valkey_url())
    except (ValueError, KeyError, VaultError, redis.RedisError) as e:
        pytest.skip(f"Valkey not available: {e}")

    yield client
    client.close()
