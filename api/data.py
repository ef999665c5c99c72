"""GET /api/data: unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core.exceptions import NotFoundError, ValidationError
from core.models import DepositFilter, ReceivableFilter


VALID_TYPES = {"deposits", "receivables", "payments", "income", "activities", "summary", "history"}
HISTORY_ENTITIES = {"deposit", "receivable"}


def _parse_uuid(value: str, field: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise ValidationError(f"'{field}' must be a UUID", field=field)


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    deposit_svc = services["deposit"]
    receivable_svc = services["receivable"]
    payment_svc = services["payment"]
    income_svc = services["income"]
    activity_svc = services["activity"]
    summary_svc = services["summary"]
    audit = services["audit"]
    config = services["config"]

    @router.get("/data")
    def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        customer_id: str | None = Query(None),
        receivable_id: str | None = Query(None),
        status: str | None = Query(None),
        due_before: str | None = Query(None),
        entity: str | None = Query(None),
        limit: int | None = Query(None, ge=1),
        offset: int = Query(0, ge=0),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        limit = min(limit or config.list_limit_default, config.list_limit_max)
        request_id = getattr(request.state, "request_id", None)

        if type == "deposits":
            data = _handle_deposits(deposit_svc, id, customer_id, status, limit, offset)
        elif type == "receivables":
            data = _handle_receivables(
                receivable_svc, id, customer_id, status, due_before, limit, offset
            )
        elif type == "payments":
            data = _handle_payments(receivable_svc, payment_svc, receivable_id)
        elif type == "income":
            data = _handle_income(income_svc, id, limit, offset)
        elif type == "activities":
            data = [a.model_dump(mode="json") for a in activity_svc.list_recent(limit)]
        elif type == "summary":
            data = summary_svc.get_summary()
        else:
            data = _handle_history(audit, entity, id)

        return success_response(data, request_id=request_id).model_dump(mode="json")

    return router


def _handle_deposits(deposit_svc, id, customer_id, status, limit, offset):
    if id:
        deposit_id = _parse_uuid(id, "id")
        deposit = deposit_svc.get_by_id(deposit_id)
        if deposit is None:
            raise NotFoundError("deposit", deposit_id)
        return deposit.model_dump(mode="json")

    filter = DepositFilter.model_validate({
        "customer_id": customer_id,
        "status": status,
        "limit": limit,
        "offset": offset,
    })
    return [d.model_dump(mode="json") for d in deposit_svc.list_all(filter)]


def _handle_receivables(receivable_svc, id, customer_id, status, due_before, limit, offset):
    if id:
        receivable_id = _parse_uuid(id, "id")
        receivable = receivable_svc.get_by_id(receivable_id)
        if receivable is None:
            raise NotFoundError("receivable", receivable_id)
        return receivable.model_dump(mode="json")

    filter = ReceivableFilter.model_validate({
        "customer_id": customer_id,
        "status": status,
        "due_before": due_before,
        "limit": limit,
        "offset": offset,
    })
    return [r.model_dump(mode="json") for r in receivable_svc.list_all(filter)]


def _handle_payments(receivable_svc, payment_svc, receivable_id):
    if not receivable_id:
        raise ValueError("'payments' type requires 'receivable_id' parameter")

    rid = _parse_uuid(receivable_id, "receivable_id")
    if receivable_svc.get_by_id(rid) is None:
        raise NotFoundError("receivable", rid)

    return [p.model_dump(mode="json") for p in payment_svc.list_payments(rid)]


def _handle_income(income_svc, id, limit, offset):
    if id:
        entries = income_svc.list_for_reference(_parse_uuid(id, "id"))
    else:
        entries = income_svc.list_recent(limit, offset)

    return [e.model_dump(mode="json") for e in entries]


def _handle_history(audit, entity, id):
    if entity not in HISTORY_ENTITIES or not id:
        raise ValueError(
            "'history' type requires 'entity' (deposit or receivable) and 'id' parameters"
        )

    return audit.get_entity_history(entity, _parse_uuid(id, "id"))
