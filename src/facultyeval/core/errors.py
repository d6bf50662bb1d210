"""Business outcomes raised by the engine.

Everything deriving from :class:`EvaluationError` is an expected, user-facing
result of a request. Storage faults are reported through
:class:`facultyeval.storage.StorageError` instead and never share this base.
"""

from __future__ import annotations

from typing import Any


class EvaluationError(Exception):
    """Base class for expected evaluation outcomes."""

    code = "evaluation_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFound(EvaluationError):
    """Unknown id, or a record outside the caller's scope."""

    code = "not_found"

    def __init__(self, evaluation_id: str) -> None:
        super().__init__("Evaluation not found", evaluation_id=evaluation_id)


class Forbidden(EvaluationError):
    code = "forbidden"


class InvalidCriteria(EvaluationError):
    code = "invalid_criteria"


class InvalidEvaluation(EvaluationError):
    code = "invalid_evaluation"


class InvalidSubmission(EvaluationError):
    code = "invalid_submission"


class OutOfRange(EvaluationError):
    code = "out_of_range"


class OutOfWindow(EvaluationError):
    code = "out_of_window"


class AlreadySubmitted(EvaluationError):
    code = "already_submitted"


class ImmutableState(EvaluationError):
    code = "immutable_state"


class InvalidTransition(EvaluationError):
    code = "invalid_transition"


class HasResponses(EvaluationError):
    code = "has_responses"


__all__ = [
    "AlreadySubmitted",
    "EvaluationError",
    "Forbidden",
    "HasResponses",
    "ImmutableState",
    "InvalidCriteria",
    "InvalidEvaluation",
    "InvalidSubmission",
    "InvalidTransition",
    "NotFound",
    "OutOfRange",
    "OutOfWindow",
]
