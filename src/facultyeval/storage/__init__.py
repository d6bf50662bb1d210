"""Durable store for evaluation records and responses."""

from __future__ import annotations

from typing import Any, Iterator, Protocol, runtime_checkable

from ..schemas import EvaluationRecord, EvaluationStatus, Response
from .errors import DuplicateResponse, StaleEvaluation, StorageConflict, StorageError
from .sql import Recompute, SqlEvaluationStore, build_engine, lock_evaluation


@runtime_checkable
class EvaluationStore(Protocol):
    """Store contract consumed by the engine."""

    def add_evaluation(self, record: EvaluationRecord) -> EvaluationRecord:
        """Persist a new record."""

    def get_evaluation(self, evaluation_id: str) -> EvaluationRecord | None:
        """Return the record or ``None``."""

    def iter_evaluations(self) -> Iterator[EvaluationRecord]:
        """Yield all records."""

    def update_evaluation(
        self,
        evaluation_id: str,
        values: dict[str, Any],
        *,
        expected_status: EvaluationStatus,
    ) -> EvaluationRecord | None:
        """Conditionally update a record guarded by its current status."""

    def delete_evaluation(self, evaluation_id: str) -> bool:
        """Delete a record that has no responses."""

    def has_response(self, evaluation_id: str, evaluator_id: str) -> bool:
        """Advisory duplicate lookup."""

    def list_responses(self, evaluation_id: str) -> list[Response]:
        """Return the responses of a record."""

    def record_response(self, response: Response, recompute: Recompute) -> Any:
        """Insert a response and refresh the aggregate atomically."""


__all__ = [
    "DuplicateResponse",
    "EvaluationStore",
    "Recompute",
    "SqlEvaluationStore",
    "StaleEvaluation",
    "StorageConflict",
    "StorageError",
    "build_engine",
    "lock_evaluation",
]
