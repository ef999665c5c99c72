"""Propagate the acting user's identity through the call stack using contextvars."""

from contextvars import ContextVar
from uuid import UUID
from contextlib import contextmanager

_current_user_id: ContextVar[UUID | None] = ContextVar("current_user_id", default=None)


def get_current_user_id() -> UUID | None:
    """
    Get current user ID from context.

    Returns None when the request was not attributed by the upstream
    gateway (background jobs, internal calls). Ledger writes do not require
    an actor; audit entries simply record no user in that case.
    """
    return _current_user_id.get()


def set_current_user_id(user_id: UUID) -> None:
    """
    Set current user ID in context.

    Called by the actor middleware for each request.
    """
    _current_user_id.set(user_id)


def clear_current_user_id() -> None:
    """
    Clear user context.

    Must be called in finally block to prevent context leakage.
    """
    _current_user_id.set(None)


@contextmanager
def user_context(user_id: UUID):
    """
    Context manager for temporarily setting user context.

    Useful for:
    - Tests
    - Background jobs acting on behalf of an operator

    Example:
        with user_context(operator_id):
            deposit_service.refund(deposit_id)  # audited as operator_id
    """
    previous = _current_user_id.get()
    set_current_user_id(user_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_user_id()
        else:
            set_current_user_id(previous)
