"""API test fixtures: TestClient over the real ledger services and test database."""

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import ACTOR_HEADER, ActorMiddleware, RequestIDMiddleware
from api.receipts import create_receipts_router
from core.config import LedgerConfig
from main import build_services


# =============================================================================
# SERVICES
# =============================================================================


@pytest.fixture
def ledger_config(tmp_path):
    return LedgerConfig(attachment_dir=str(tmp_path / "receipts"), max_receipt_bytes=4096)


@pytest.fixture
def services(clean_db, ledger_config):
    """Every ledger service wired against the test database, no summary cache."""
    return build_services(clean_db, None, ledger_config)


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


def build_app(services: dict) -> FastAPI:
    """FastAPI app with the production middleware stack and routers."""
    app = FastAPI()
    app.add_middleware(ActorMiddleware)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")
    app.include_router(create_receipts_router(services), prefix="/api")

    return app


@pytest.fixture
def app(services):
    return build_app(services)


@pytest.fixture
def client(app, test_user_id):
    """Client whose requests carry the gateway's actor header."""
    c = TestClient(app, raise_server_exceptions=False)
    c.headers[ACTOR_HEADER] = str(test_user_id)
    return c


@pytest.fixture
def anonymous_client(app):
    """Client without an actor header."""
    return TestClient(app, raise_server_exceptions=False)


# =============================================================================
# REQUEST HELPERS
# =============================================================================


@pytest.fixture
def act(client):
    """POST an action and return the response."""

    def _act(domain: str, action: str, **data):
        return client.post("/api/actions", json={"domain": domain, "action": action, "data": data})

    return _act
