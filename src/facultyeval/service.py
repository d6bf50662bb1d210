"""Request-level API over the evaluation engine."""

from __future__ import annotations

import json
from itertools import islice
from pathlib import Path
from typing import Any

import pendulum
import structlog

from . import __version__
from .core import (
    Forbidden,
    LifecycleController,
    SubmissionEngine,
    VisibilityResolver,
)
from .schemas import (
    Caller,
    ClientMeta,
    EvaluationChanges,
    EvaluationDraft,
    EvaluationFilters,
    EvaluationRecord,
    EvaluationStatus,
    EvaluationSummary,
    Response,
    ResponseSubmission,
    SubmissionReceipt,
)
from .storage import EvaluationStore

DEFAULT_PAGE_SIZE = 10


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: dict) -> None:
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False, default=_json_default))
            handle.write("\n")


class EvaluationService:
    """Entry points exposed to transports (CLI, web handlers)."""

    def __init__(
        self,
        *,
        store: EvaluationStore,
        resolver: VisibilityResolver,
        lifecycle: LifecycleController,
        submissions: SubmissionEngine,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._lifecycle = lifecycle
        self._submissions = submissions
        self._audit = audit_logger
        self._logger = structlog.get_logger(__name__)

    def list_evaluations(
        self,
        caller: Caller,
        filters: EvaluationFilters | None = None,
        *,
        page: int = 1,
        limit: int | None = DEFAULT_PAGE_SIZE,
    ) -> list[EvaluationSummary]:
        """One page of visible evaluations, newest first; ``limit=None`` returns every page."""
        if page < 1 or (limit is not None and limit < 1):
            raise ValueError("page and limit must be positive")
        visible = self._resolver.list_visible(caller, filters)
        if limit is None:
            return list(visible)
        start = (page - 1) * limit
        return list(islice(visible, start, start + limit))

    def get_evaluation(self, caller: Caller, evaluation_id: str) -> EvaluationRecord:
        return self._resolver.get_visible(caller, evaluation_id)

    def create_evaluation(self, caller: Caller, draft: EvaluationDraft) -> EvaluationRecord:
        record = self._lifecycle.create(caller, draft)
        self._record_audit("evaluation.created", caller, record.id)
        return record

    def update_evaluation(
        self,
        caller: Caller,
        evaluation_id: str,
        changes: EvaluationChanges,
    ) -> EvaluationRecord:
        record = self._lifecycle.update(caller, evaluation_id, changes)
        self._record_audit(
            "evaluation.updated",
            caller,
            evaluation_id,
            fields=sorted(changes.model_fields_set),
        )
        return record

    def transition_evaluation(
        self,
        caller: Caller,
        evaluation_id: str,
        target: EvaluationStatus | str,
    ) -> EvaluationRecord:
        record = self._lifecycle.transition(caller, evaluation_id, target)
        self._record_audit("evaluation.transitioned", caller, evaluation_id, status=record.status.value)
        return record

    def delete_evaluation(self, caller: Caller, evaluation_id: str) -> None:
        self._lifecycle.delete(caller, evaluation_id)
        self._record_audit("evaluation.deleted", caller, evaluation_id)

    def submit_response(
        self,
        caller: Caller,
        evaluation_id: str,
        submission: ResponseSubmission,
        client_meta: ClientMeta | None = None,
    ) -> SubmissionReceipt:
        receipt = self._submissions.submit(caller, evaluation_id, submission, client_meta)
        self._record_audit(
            "response.submitted",
            caller,
            evaluation_id,
            response_id=receipt.response.id,
            client_meta=receipt.response.client_meta.model_dump(),
        )
        return receipt

    def list_responses(self, caller: Caller, evaluation_id: str) -> list[Response]:
        """Responses of one evaluation; coordinators only."""
        if not caller.is_coordinator:
            raise Forbidden(
                f"Role {caller.role.value} may not read individual responses",
                caller_id=caller.id,
            )
        self._resolver.get_visible(caller, evaluation_id)
        return self._store.list_responses(evaluation_id)

    def _record_audit(self, action: str, caller: Caller, evaluation_id: str, **extra: Any) -> None:
        self._logger.info(action, evaluation_id=evaluation_id, actor=caller.id, role=caller.role.value, **extra)
        if not self._audit:
            return
        self._audit.append(
            {
                "action": action,
                "evaluation_id": evaluation_id,
                "actor": caller.id,
                "role": caller.role.value,
                "timestamp": pendulum.now("UTC").to_iso8601_string(),
                "app_version": __version__,
                **extra,
            }
        )


def _json_default(value):  # type: ignore[override]
    if isinstance(value, pendulum.DateTime):
        return value.to_iso8601_string()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
