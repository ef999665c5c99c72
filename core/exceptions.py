"""
Typed exceptions for ledger operations.

Every rejected call raises one of these, never a bare Exception, so the API
layer can map each to a specific error code. ValidationError and
NotFoundError also subclass ValueError for callers that only care about
"bad input".
"""


class LedgerError(Exception):
    """Base class for ledger errors."""

    code = "LEDGER_ERROR"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(LedgerError, ValueError):
    """
    Malformed or out-of-range input.

    Carries the name of the failing field so clients can highlight it.
    """

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(LedgerError, ValueError):
    """Unknown customer, deposit, receivable or receipt id."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity_type: str, entity_id):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} {entity_id} not found")


class ConflictError(LedgerError):
    """Operation not permitted in the entity's current state."""

    code = "CONFLICT"
    status_code = 409


class DependencyError(LedgerError):
    """
    A collaborator the operation depends on is unavailable.

    Raised for the attachment store and the income ledger. When raised inside
    a ledger transaction the whole mutation has been rolled back.
    """

    code = "SERVICE_UNAVAILABLE"
    status_code = 503
