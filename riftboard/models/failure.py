"""
Failure classification and the response envelope.

Every board endpoint answers with an `ApiResponse`. Engine errors are
`KnownError` subclasses that carry their own classification and HTTP
status, so the app-level handler can turn them into envelopes without
guessing.

Taxonomy:
- NotFound: unknown match, instance or catalogue entry. Not retryable.
- EmptyPile: draw from an empty deck. An expected outcome, reported as a
  refusal rather than an error.
- InvalidTransition: a structural rule was broken (wrong zone for the
  card kind, wrong owner, stale source zone, score out of range).
  Rejected with no state change.
- StorageFailure: the database failed. Retryable; nothing was applied.
- Unknown: anything else. Answered with a 500 envelope exposing only the
  exception type.

All user-visible responses pass through `finalize_response()`.
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, PrivateAttr


class FailureKind(str, Enum):
    """Classification of failure types."""

    NOT_FOUND = "not_found"
    EMPTY_PILE = "empty_pile"

    INVALID_TRANSITION = "invalid_transition"

    STORAGE_FAILURE = "storage_failure"

    UNKNOWN = "unknown"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    REFUSAL = "refusal"
    KNOWN_FAILURE = "known_failure"
    UNKNOWN_FAILURE = "unknown_failure"


T = TypeVar("T")


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="Explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the player",
    )
    retryable: bool = Field(
        default=False,
        description="True if repeating the same request may succeed",
    )


class ApiResponse(BaseModel, Generic[T]):
    """
    Response envelope for all board endpoints.

    Exactly one of `data` (success) or `failure` (anything else) is set.
    """

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    data: T | None = Field(
        default=None,
        description="Response data (present on success)",
    )
    failure: FailureDetail | None = Field(
        default=None,
        description="Failure details (present on non-success)",
    )

    _finalized: bool = PrivateAttr(default=False)


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
        suggestion: str | None = None,
        status_code: int = 400,
        retryable: bool = False,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to a finalized ApiResponse."""
        response: ApiResponse[Any] = ApiResponse(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=self.kind,
                message=self.message,
                detail=self.detail,
                suggestion=self.suggestion,
                retryable=self.retryable,
            ),
        )
        return finalize_response(response)


class NotFoundError(KnownError):
    """Raised when a match, card instance or catalogue entry does not exist."""

    def __init__(self, entity: str, identifier: str):
        self.entity = entity
        self.identifier = identifier
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"{entity.capitalize()} '{identifier}' not found.",
            detail=f"{entity}={identifier}",
            status_code=404,
        )


class InvalidTransitionError(KnownError):
    """
    Raised when a requested transition breaks a structural constraint.

    `constraint` is a short machine-readable name, e.g. "zone_accepts_kind".
    """

    def __init__(self, constraint: str, message: str):
        self.constraint = constraint
        super().__init__(
            kind=FailureKind.INVALID_TRANSITION,
            message=message,
            detail=f"Constraint violated: {constraint}",
            suggestion="Refresh the board and try again.",
            status_code=409,
        )


class StorageFailureError(KnownError):
    """Raised when the database fails mid-transition. Nothing was applied."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        super().__init__(
            kind=FailureKind.STORAGE_FAILURE,
            message=f"Could not save '{operation}'. No changes were applied.",
            detail=type(cause).__name__ if cause is not None else None,
            suggestion="Retry the action.",
            status_code=503,
            retryable=True,
        )


# =============================================================================
# RESPONSE BOUNDARY
# =============================================================================


STANDARD_MESSAGES: dict[OutcomeType, str] = {
    OutcomeType.REFUSAL: "The action was not carried out.",
    OutcomeType.KNOWN_FAILURE: "The action failed due to a known issue.",
    OutcomeType.UNKNOWN_FAILURE: "Something went wrong and the cause is unknown.",
}

STANDARD_SUGGESTIONS: dict[OutcomeType, str] = {
    OutcomeType.REFUSAL: "Nothing changed on the board.",
    OutcomeType.KNOWN_FAILURE: "Check the error details and adjust your request.",
    OutcomeType.UNKNOWN_FAILURE: "If this persists, please report the issue.",
}


def finalize_response(response: ApiResponse[Any]) -> ApiResponse[Any]:
    """
    Finalize a response through the response boundary.

    Raises:
        ValueError: If response structure is invalid
    """
    if response.outcome == OutcomeType.SUCCESS:
        if response.failure is not None:
            raise ValueError("Success response must not have failure details")
    else:
        if response.failure is None:
            raise ValueError(f"{response.outcome.value} response must have failure details")

    response._finalized = True

    return response


def is_finalized(response: ApiResponse[Any]) -> bool:
    """Check if a response has passed through the response boundary."""
    return response._finalized


def create_unknown_failure(exception: Exception) -> ApiResponse[Any]:
    """
    Create an unknown failure response from an exception.

    Only the exception type is exposed, never its message.
    """
    response: ApiResponse[Any] = ApiResponse(
        outcome=OutcomeType.UNKNOWN_FAILURE,
        failure=FailureDetail(
            kind=FailureKind.UNKNOWN,
            message=STANDARD_MESSAGES[OutcomeType.UNKNOWN_FAILURE],
            detail=type(exception).__name__,
            suggestion=STANDARD_SUGGESTIONS[OutcomeType.UNKNOWN_FAILURE],
        ),
    )

    return finalize_response(response)


def create_refusal(kind: FailureKind, constraint: str) -> ApiResponse[Any]:
    """
    Create a refusal response.

    Used for expected non-results such as drawing from an empty pile.
    """
    response: ApiResponse[Any] = ApiResponse(
        outcome=OutcomeType.REFUSAL,
        failure=FailureDetail(
            kind=kind,
            message=STANDARD_MESSAGES[OutcomeType.REFUSAL],
            detail=constraint,
            suggestion=STANDARD_SUGGESTIONS[OutcomeType.REFUSAL],
        ),
    )

    return finalize_response(response)


def create_success(data: T) -> ApiResponse[T]:
    """Create a finalized success response."""
    response = ApiResponse[T](outcome=OutcomeType.SUCCESS, data=data)
    return finalize_response(response)
