"""Core evaluation engine components."""

from __future__ import annotations

# NOTE: keep imports explicit for export clarity.
from .aggregator import Aggregate, recompute, response_score
from .criteria import CriteriaPolicy, CriteriaValidator, validate_criteria
from .errors import (
    AlreadySubmitted,
    EvaluationError,
    Forbidden,
    HasResponses,
    ImmutableState,
    InvalidCriteria,
    InvalidEvaluation,
    InvalidSubmission,
    InvalidTransition,
    NotFound,
    OutOfRange,
    OutOfWindow,
)
from .lifecycle import TRANSITIONS, LifecycleController
from .submission import SubmissionEngine
from .visibility import Scope, VisibilityResolver

__all__ = [
    "Aggregate",
    "AlreadySubmitted",
    "CriteriaPolicy",
    "CriteriaValidator",
    "EvaluationError",
    "Forbidden",
    "HasResponses",
    "ImmutableState",
    "InvalidCriteria",
    "InvalidEvaluation",
    "InvalidSubmission",
    "InvalidTransition",
    "LifecycleController",
    "NotFound",
    "OutOfRange",
    "OutOfWindow",
    "Scope",
    "SubmissionEngine",
    "TRANSITIONS",
    "VisibilityResolver",
    "recompute",
    "response_score",
    "validate_criteria",
]
