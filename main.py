"""
Application factory for the receivables & deposits ledger service.

Wires clients, services and event handlers, then mounts the routers.
Run with:  uvicorn main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import redis
from dotenv import load_dotenv
from fastapi import FastAPI

from api.actions import create_actions_router
from api.base import success_response
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import ActorMiddleware, RequestIDMiddleware
from api.receipts import create_receipts_router
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import get_database_url, get_valkey_url
from core.audit import AuditLogger
from core.config import LedgerConfig
from core.event_bus import EventBus
from core.handlers.activity_handler import activity_handlers
from core.handlers.summary_cache_handler import LEDGER_EVENT_TYPES, handle_ledger_changed
from core.services.activity_service import ActivityService
from core.services.customer_directory import CustomerDirectory
from core.services.deposit_service import DepositService
from core.services.income_service import IncomeService
from core.services.payment_service import PaymentService
from core.services.receipt_store import ReceiptStore
from core.services.receivable_service import ReceivableService
from core.services.summary_service import LedgerSummaryService

logger = logging.getLogger(__name__)


def build_services(
    postgres: PostgresClient,
    valkey: ValkeyClient | None,
    config: LedgerConfig,
    event_bus: EventBus | None = None,
) -> dict:
    """
    Construct every ledger service and subscribe the event handlers.

    Returns:
        Services keyed by the names the routers look up
    """
    event_bus = event_bus or EventBus()
    audit = AuditLogger(postgres)
    customers = CustomerDirectory(postgres)
    income = IncomeService(postgres)
    activity = ActivityService(postgres)
    receipts = ReceiptStore(
        config.attachment_dir, config.max_receipt_bytes, config.allowed_receipt_types
    )
    summary = LedgerSummaryService(postgres, valkey, income, config)

    receivable = ReceivableService(postgres, audit, event_bus, customers, config)
    deposit = DepositService(
        postgres, audit, event_bus, customers, receivable, income, receipts, config
    )
    payment = PaymentService(postgres, audit, event_bus, receivable, income, receipts)

    for event_type, handler in activity_handlers(activity).items():
        event_bus.subscribe(event_type, handler)

    invalidate = handle_ledger_changed(summary)
    for event_type in LEDGER_EVENT_TYPES:
        event_bus.subscribe(event_type, invalidate)

    return {
        "config": config,
        "event_bus": event_bus,
        "audit": audit,
        "customers": customers,
        "income": income,
        "activity": activity,
        "receipts": receipts,
        "summary": summary,
        "receivable": receivable,
        "deposit": deposit,
        "payment": payment,
    }


def _connect_valkey() -> ValkeyClient | None:
    try:
        return ValkeyClient(get_valkey_url())
    except redis.RedisError as e:
        # The summary cache is optional; totals are computed on every read
        logger.warning("Valkey unavailable, ledger summary will not be cached: %s", e)
        return None


def create_app(config: LedgerConfig | None = None) -> FastAPI:
    """Build the FastAPI application."""
    load_dotenv(Path(__file__).parent / ".env")

    config = config or LedgerConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    postgres = PostgresClient(get_database_url())
    valkey = _connect_valkey()
    services = build_services(postgres, valkey, config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Ledger service started")
        yield
        if valkey is not None:
            valkey.close()
        PostgresClient.close_all_pools()
        logger.info("Ledger service stopped")

    app = FastAPI(title="Receivables & Deposits Ledger", lifespan=lifespan)
    app.add_middleware(ActorMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")
    app.include_router(create_receipts_router(services), prefix="/api")

    @app.get("/health")
    def health():
        postgres.execute_scalar("SELECT 1")
        return success_response({"status": "ok"}).model_dump(mode="json")

    return app
