"""Service fixtures.

Two flavours:
- mock_* fixtures wire services against MagicMock clients for fast unit tests
  of validation, status and side-effect rules;
- db_* fixtures wire the real services against the test database.
"""

from unittest.mock import MagicMock, Mock
from uuid import UUID

import pytest

from core.audit import AuditLogger
from core.config import LedgerConfig
from core.event_bus import EventBus
from core.models import Customer
from core.services.activity_service import ActivityService
from core.services.customer_directory import CustomerDirectory
from core.services.deposit_service import DepositService
from core.services.income_service import IncomeService
from core.services.payment_service import PaymentService
from core.services.receipt_store import ReceiptStore
from core.services.receivable_service import ReceivableService

# Must match tests/conftest.py
TEST_CUSTOMER_ID = UUID("00000000-0000-0000-0000-0000000000c1")
TEST_CUSTOMER_NAME = "Acme Trading"


# =============================================================================
# MOCK WIRING
# =============================================================================


@pytest.fixture
def config():
    return LedgerConfig()


@pytest.fixture
def tx():
    return MagicMock(name="tx")


@pytest.fixture
def postgres(tx):
    postgres = MagicMock(name="postgres")
    postgres.transaction.return_value.__enter__.return_value = tx
    return postgres


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


@pytest.fixture
def event_bus():
    return Mock(spec=EventBus)


@pytest.fixture
def customers():
    directory = Mock(spec=CustomerDirectory)
    directory.require.return_value = Customer(id=TEST_CUSTOMER_ID, name=TEST_CUSTOMER_NAME)
    return directory


@pytest.fixture
def income():
    """Income mock that keeps a running net total per reference in `income.booked`."""
    income = Mock(spec=IncomeService)
    income.booked = {}

    def post(tx, amount_cents, source, reference_id, customer_id=None, description=None):
        income.booked[reference_id] = income.booked.get(reference_id, 0) + amount_cents

    income.post.side_effect = post
    income.booked_in.side_effect = lambda tx, reference_id: income.booked.get(reference_id, 0)
    return income


@pytest.fixture
def receipts():
    return Mock(spec=ReceiptStore)


@pytest.fixture
def mock_receivables(postgres, audit, event_bus, customers, config):
    return ReceivableService(postgres, audit, event_bus, customers, config)


@pytest.fixture
def mock_deposits(postgres, audit, event_bus, customers, mock_receivables, income, receipts, config):
    return DepositService(
        postgres, audit, event_bus, customers, mock_receivables, income, receipts, config
    )


@pytest.fixture
def mock_payments(postgres, audit, event_bus, mock_receivables, income, receipts):
    return PaymentService(postgres, audit, event_bus, mock_receivables, income, receipts)


# =============================================================================
# DATABASE WIRING
# =============================================================================


@pytest.fixture
def db_event_bus():
    return EventBus()


@pytest.fixture
def db_receipts(tmp_path, config):
    return ReceiptStore(str(tmp_path / "receipts"), config.max_receipt_bytes, config.allowed_receipt_types)


@pytest.fixture
def db_income(clean_db):
    return IncomeService(clean_db)


@pytest.fixture
def db_activity(clean_db):
    return ActivityService(clean_db)


@pytest.fixture
def db_receivables(clean_db, db_event_bus, config):
    return ReceivableService(
        clean_db, AuditLogger(clean_db), db_event_bus, CustomerDirectory(clean_db), config
    )


@pytest.fixture
def db_deposits(clean_db, db_event_bus, db_receivables, db_income, db_receipts, config):
    return DepositService(
        clean_db, AuditLogger(clean_db), db_event_bus, CustomerDirectory(clean_db),
        db_receivables, db_income, db_receipts, config,
    )


@pytest.fixture
def db_payments(clean_db, db_event_bus, db_receivables, db_income, db_receipts):
    return PaymentService(
        clean_db, AuditLogger(clean_db), db_event_bus, db_receivables, db_income, db_receipts
    )
