"""
Failure Classification: Shared Vocabulary for Explainable Outcomes.

Every failure that can reach a caller is classified by a FailureKind and,
where it is surfaced, explained through a FailureDetail.

Outcome types:
- Success: Operation completed and its result was applied
- Refusal: System chose not to proceed (expected, explainable)
- KnownFailure: System knows why it failed
- UnknownFailure: System does not know why it failed

PROPAGATION:
Only the catalog boundary raises to callers. The pricing engine, the
printing cache and the preference store absorb their own failures.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"
    MISSING_REQUIRED = "missing_required"

    # Resource failures
    NOT_FOUND = "not_found"
    EMPTY_RESULT = "empty_result"

    # Catalog failures
    SERVICE_UNAVAILABLE = "service_unavailable"
    EXTERNAL_API_ERROR = "external_api_error"
    TIMEOUT = "timeout"

    # Persistence failures (never surfaced, logged only)
    STORAGE_QUOTA_EXCEEDED = "storage_quota_exceeded"
    STORAGE_CORRUPTED = "storage_corrupted"
    STORAGE_UNAVAILABLE = "storage_unavailable"

    # Unknown
    UNKNOWN = "unknown"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    REFUSAL = "refusal"
    KNOWN_FAILURE = "known_failure"
    UNKNOWN_FAILURE = "unknown_failure"


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )
    retryable: bool = Field(
        default=False,
        description="Whether trying again may succeed",
    )


# Standard message for failures the system cannot explain, fixed and boring
UNKNOWN_FAILURE_MESSAGE = "Could not load printings and the cause is unknown."
UNKNOWN_FAILURE_SUGGESTION = "If this persists, please report the issue."


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
        retryable: bool = False,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.retryable = retryable
        super().__init__(message)

    def to_detail(self) -> FailureDetail:
        """Convert to a FailureDetail."""
        return FailureDetail(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
            retryable=self.retryable,
        )


def describe_unknown_failure(exception: Exception) -> FailureDetail:
    """
    Build a FailureDetail for an exception the system did not anticipate.

    The message is fixed; only the exception type is carried as detail.
    """
    return FailureDetail(
        kind=FailureKind.UNKNOWN,
        message=UNKNOWN_FAILURE_MESSAGE,
        detail=type(exception).__name__,
        suggestion=UNKNOWN_FAILURE_SUGGESTION,
        retryable=True,
    )
