"""Pydantic schema definitions shared by the engine, store and CLI."""

from __future__ import annotations

from .evaluation import (
    Criterion,
    EvaluationCategory,
    EvaluationChanges,
    EvaluationDraft,
    EvaluationFilters,
    EvaluationRecord,
    EvaluationStatus,
    EvaluationSummary,
    Semester,
)
from .identity import COORDINATOR_ROLES, REVIEWER_ROLES, SUPERVISOR_ROLES, Caller, Role
from .response import ClientMeta, Response, ResponseSubmission, ScoreLine, SubmissionReceipt

__all__ = [
    "Caller",
    "ClientMeta",
    "COORDINATOR_ROLES",
    "Criterion",
    "EvaluationCategory",
    "EvaluationChanges",
    "EvaluationDraft",
    "EvaluationFilters",
    "EvaluationRecord",
    "EvaluationStatus",
    "EvaluationSummary",
    "REVIEWER_ROLES",
    "Response",
    "ResponseSubmission",
    "Role",
    "SUPERVISOR_ROLES",
    "ScoreLine",
    "Semester",
    "SubmissionReceipt",
]
