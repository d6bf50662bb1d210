"""Storage-level outcomes and faults."""

from __future__ import annotations


class StorageError(RuntimeError):
    """The store failed; callers should treat this as a system fault."""


class StorageConflict(Exception):
    """A constrained write was refused by the store."""


class DuplicateResponse(StorageConflict):
    """The unique (evaluation, evaluator) index rejected an insert."""

    def __init__(self, evaluation_id: str, evaluator_id: str) -> None:
        super().__init__(f"Response already recorded for {evaluator_id!r} on {evaluation_id!r}")
        self.evaluation_id = evaluation_id
        self.evaluator_id = evaluator_id


class StaleEvaluation(StorageConflict):
    """The evaluation stopped accepting responses before the write committed."""

    def __init__(self, evaluation_id: str) -> None:
        super().__init__(f"Evaluation {evaluation_id!r} is no longer active")
        self.evaluation_id = evaluation_id
