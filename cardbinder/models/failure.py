"""
Failure classification for collection operations.

Every failure that reaches the HTTP boundary is a KnownError subclass and is
rendered as an ErrorResponse body: {"error": ..., "details": ..., "kind": ...}.

Taxonomy:
- ValidationFailure: a malformed card reference (CardValidationError)
- StoreUnavailable: the store could not be reached or rejected the call
- Write conflict: a compare-and-swap write lost a race
- Timeout: a store call exceeded its deadline
- Corrupt document: a stored collection could not be decoded

A missing collection is never a failure; it reads as an empty collection.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    VALIDATION_FAILED = "validation_failed"
    SERVICE_UNAVAILABLE = "service_unavailable"
    WRITE_CONFLICT = "write_conflict"
    TIMEOUT = "timeout"
    CORRUPT_DOCUMENT = "corrupt_document"


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: str = Field(
        ...,
        description="Short description of the operation that failed",
    )
    details: str = Field(
        default="",
        description="Underlying cause, for diagnostics",
    )
    kind: FailureKind = Field(
        ...,
        description="Failure classification",
    )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to an ErrorResponse."""
        return ErrorResponse(error=self.message, details=self.detail or "", kind=self.kind)


class CardValidationError(KnownError):
    """Raised when a card reference or held entry is malformed."""

    def __init__(self, detail: str):
        super().__init__(
            kind=FailureKind.VALIDATION_FAILED,
            message="Invalid card.",
            detail=detail,
            status_code=400,
        )


# Human-readable actions for each store operation, used in error messages.
STORE_ACTIONS: dict[str, str] = {
    "get_or_create": "fetch collection",
    "load": "fetch collection",
    "append_entry": "add card",
    "remove_matching": "remove card",
    "replace_all": "clear collection",
    "upsert_increment_batch": "add cards",
}


class StoreError(KnownError):
    """
    A collection store operation failed.

    Carries the store operation and scope so the failure can be traced back
    to the call that produced it. Always a server fault.
    """

    default_kind = FailureKind.SERVICE_UNAVAILABLE

    def __init__(self, operation: str, scope: str, detail: str | None = None):
        self.operation = operation
        self.scope = scope
        action = STORE_ACTIONS.get(operation, operation)
        super().__init__(
            kind=self.default_kind,
            message=f"Failed to {action}.",
            detail=detail,
            status_code=500,
        )


class StoreUnavailableError(StoreError):
    """The store could not be reached or the database rejected the statement."""


class StoreConflictError(StoreError):
    """A write lost a race against a concurrent writer on the same scope."""

    default_kind = FailureKind.WRITE_CONFLICT


class StoreTimeoutError(StoreError):
    """A store call did not finish before the caller's deadline."""

    default_kind = FailureKind.TIMEOUT


class StoreCorruptionError(StoreError):
    """A stored collection document could not be decoded into entries."""

    default_kind = FailureKind.CORRUPT_DOCUMENT
