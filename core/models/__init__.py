"""Core domain models."""

from core.status import DepositStatus, ReceivableStatus
from core.models.customer import Customer
from core.models.deposit import Deposit, DepositCreate, DepositUpdate, DepositFilter
from core.models.receivable import (
    Receivable, ReceivableCreate, ReceivableUpdate, ReceivableFilter,
    PaymentCreate, ReceivablePayment,
)
from core.models.income import IncomeEntry, IncomeSource
from core.models.activity import Activity, ActivityKind

__all__ = [
    # Status
    "DepositStatus", "ReceivableStatus",
    # Customer
    "Customer",
    # Deposit
    "Deposit", "DepositCreate", "DepositUpdate", "DepositFilter",
    # Receivable
    "Receivable", "ReceivableCreate", "ReceivableUpdate", "ReceivableFilter",
    "PaymentCreate", "ReceivablePayment",
    # Income
    "IncomeEntry", "IncomeSource",
    # Activity
    "Activity", "ActivityKind",
]
