"""Request-scoped middleware for API requests."""

import logging
from uuid import UUID, uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from utils.user_context import clear_current_user_id, set_current_user_id

logger = logging.getLogger(__name__)

ACTOR_HEADER = "X-Actor-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a unique request ID to every request."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class ActorMiddleware(BaseHTTPMiddleware):
    """
    Attributes the request to the actor named by the gateway.

    Authentication happens upstream; the gateway forwards the authenticated
    user's id in X-Actor-ID. Requests without the header run with no actor
    and are audited as such.
    """

    async def dispatch(self, request: Request, call_next):
        raw = request.headers.get(ACTOR_HEADER)
        if raw is None:
            return await call_next(request)

        try:
            actor_id = UUID(raw)
        except ValueError:
            logger.warning("Rejected malformed %s header", ACTOR_HEADER)
            return JSONResponse(
                status_code=400,
                content=error_response(
                    ErrorCodes.INVALID_REQUEST,
                    f"{ACTOR_HEADER} must be a UUID",
                    request_id=getattr(request.state, "request_id", None),
                ).model_dump(mode="json"),
            )

        set_current_user_id(actor_id)
        try:
            return await call_next(request)
        finally:
            clear_current_user_id()
