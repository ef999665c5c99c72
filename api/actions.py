"""POST /api/actions: unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import success_response
from core.exceptions import ValidationError
from core.models import (
    DepositCreate, DepositUpdate,
    ReceivableCreate, ReceivableUpdate,
    PaymentCreate,
)


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def _require_id(data: dict) -> UUID:
    raw = data.pop("id", None)
    if raw is None:
        raise ValidationError("'id' is required", field="id")
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError("'id' must be a UUID", field="id")


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "deposit": DepositHandler(services["deposit"]),
        "receivable": ReceivableHandler(services["receivable"], services["payment"]),
    }

    @router.post("/actions")
    def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(
            result, request_id=getattr(request.state, "request_id", None)
        ).model_dump(mode="json")

    return router


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class DepositHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete", "apply", "refund"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        deposit = self.service.create(DepositCreate.model_validate(data))
        return deposit.model_dump(mode="json")

    def _handle_update(self, data: dict):
        deposit_id = _require_id(data)
        deposit = self.service.update(deposit_id, DepositUpdate.model_validate(data))
        return deposit.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        self.service.delete(_require_id(data))
        return {"deleted": True}

    def _handle_apply(self, data: dict):
        deposit_id = _require_id(data)
        deposit = self.service.apply(deposit_id, reference=data.get("reference"))
        return deposit.model_dump(mode="json")

    def _handle_refund(self, data: dict):
        deposit = self.service.refund(_require_id(data))
        return deposit.model_dump(mode="json")


class ReceivableHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete", "pay"}

    def __init__(self, service, payment_service):
        self.service = service
        self.payment_service = payment_service

    def _handle_create(self, data: dict):
        receivable = self.service.create(ReceivableCreate.model_validate(data))
        return receivable.model_dump(mode="json")

    def _handle_update(self, data: dict):
        receivable_id = _require_id(data)
        receivable = self.service.update(receivable_id, ReceivableUpdate.model_validate(data))
        return receivable.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        self.service.delete(_require_id(data))
        return {"deleted": True}

    def _handle_pay(self, data: dict):
        receivable_id = _require_id(data)
        receivable = self.payment_service.apply_payment(
            receivable_id, PaymentCreate.model_validate(data)
        )
        return receivable.model_dump(mode="json")
