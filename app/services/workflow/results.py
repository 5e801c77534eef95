"""Typed outcomes of workflow commands."""
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from app.utils.errors import (
    AppError,
    ConflictError,
    ForbiddenError,
    IllegalTransitionError,
    NotFoundError,
    ServiceUnavailableError,
    ValidationError,
)


class Outcome(str, enum.Enum):
    """Closed set of results handed to the API layer."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    DENIED = "denied"
    VALIDATION_ERROR = "validation_error"
    ILLEGAL_TRANSITION = "illegal_transition"
    CONFLICT = "conflict"
    TRANSIENT_FAILURE = "transient_failure"


@dataclass(frozen=True)
class OperationResult:
    """
    Result of a workflow command.

    ``value`` carries the updated domain object on success. ``message`` and
    ``details`` describe the failure otherwise; they never contain raw store errors.
    """

    outcome: Outcome
    value: Any = None
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(Outcome.SUCCESS, value=value)

    @classmethod
    def failure(cls, outcome: Outcome, message: str, **details: Any) -> "OperationResult":
        return cls(outcome, message=message, details=details)


def raise_for_outcome(result: OperationResult, resource: str = "Claim") -> Any:
    """
    Return the value of a successful result or raise the matching AppError.

    Raises:
        AppError: subclass chosen from the outcome
    """
    if result.ok:
        return result.value

    error: Optional[AppError] = None
    hidden = result.outcome == Outcome.DENIED and result.details.get("visible") is False
    if result.outcome == Outcome.NOT_FOUND or hidden:
        # Claims the user cannot read are reported exactly like missing ones
        error = NotFoundError(resource, result.details.get("identifier"))
    elif result.outcome == Outcome.DENIED:
        error = ForbiddenError(result.message or "Permission denied", details=result.details)
    elif result.outcome == Outcome.VALIDATION_ERROR:
        error = ValidationError(result.message, details=result.details)
    elif result.outcome == Outcome.ILLEGAL_TRANSITION:
        error = IllegalTransitionError(result.message, details=result.details)
    elif result.outcome == Outcome.CONFLICT:
        error = ConflictError(result.message or "Claim was modified concurrently", details=result.details)
    else:
        error = ServiceUnavailableError(details=result.details)
    raise error
