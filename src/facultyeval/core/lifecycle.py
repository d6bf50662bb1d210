"""Coordinator-driven lifecycle of evaluation records."""

from __future__ import annotations

from typing import Any, Callable

import pendulum
import structlog

from ..schemas import (
    Caller,
    EvaluationChanges,
    EvaluationDraft,
    EvaluationRecord,
    EvaluationStatus,
)
from ..schemas.evaluation import new_id
from ..storage import EvaluationStore
from .criteria import CriteriaValidator
from .errors import (
    Forbidden,
    HasResponses,
    ImmutableState,
    InvalidEvaluation,
    InvalidTransition,
    NotFound,
)

TRANSITIONS: dict[EvaluationStatus, EvaluationStatus] = {
    EvaluationStatus.DRAFT: EvaluationStatus.ACTIVE,
    EvaluationStatus.ACTIVE: EvaluationStatus.COMPLETED,
    EvaluationStatus.COMPLETED: EvaluationStatus.ARCHIVED,
}


REQUIRED_FIELDS = (
    "title",
    "academic_year",
    "semester",
    "category",
    "criteria",
    "start_date",
    "end_date",
    "department",
)


class LifecycleController:
    """Create, edit, transition and delete evaluation records."""

    def __init__(
        self,
        store: EvaluationStore,
        *,
        criteria_validator: CriteriaValidator | None = None,
        now_provider: Callable[[], Any] | None = None,
    ) -> None:
        self._store = store
        self._validate_criteria = criteria_validator or CriteriaValidator()
        self._now_provider = now_provider or (lambda: pendulum.now("UTC"))
        self._logger = structlog.get_logger(__name__)

    def create(self, caller: Caller, draft: EvaluationDraft) -> EvaluationRecord:
        self._require_coordinator(caller)
        criteria = self._validate_criteria(draft.criteria)
        self._validate_fields(draft.model_dump())

        now = self._now_provider()
        record = EvaluationRecord(
            id=new_id(),
            **draft.model_dump(exclude={"criteria"}),
            criteria=criteria,
            status=EvaluationStatus.DRAFT,
            created_by=caller.id,
            created_at=now,
            updated_at=now,
        )
        self._store.add_evaluation(record)
        self._logger.info("lifecycle.created", evaluation_id=record.id, created_by=caller.id)
        return record

    def update(self, caller: Caller, evaluation_id: str, changes: EvaluationChanges) -> EvaluationRecord:
        """Edit metadata, window or criteria of a draft."""
        self._require_coordinator(caller)
        record = self._load(evaluation_id)
        if record.status is not EvaluationStatus.DRAFT:
            raise ImmutableState(
                f"Cannot update a {record.status.value} evaluation",
                evaluation_id=evaluation_id,
                status=record.status.value,
            )

        values = changes.model_dump(exclude_unset=True)
        cleared = sorted(key for key in REQUIRED_FIELDS if key in values and values[key] is None)
        if cleared:
            raise InvalidEvaluation("Required fields cannot be cleared", fields=cleared)
        if "criteria" in values:
            values["criteria"] = [
                criterion.model_dump(mode="json")
                for criterion in self._validate_criteria(changes.criteria)
            ]
        merged = record.model_dump()
        merged.update({key: getattr(changes, key) for key in values if key != "criteria"})
        self._validate_fields(merged)

        values["updated_by"] = caller.id
        values["updated_at"] = self._now_provider()
        updated = self._store.update_evaluation(
            evaluation_id,
            values,
            expected_status=EvaluationStatus.DRAFT,
        )
        if updated is None:
            current = self._load(evaluation_id)
            raise ImmutableState(
                f"Cannot update a {current.status.value} evaluation",
                evaluation_id=evaluation_id,
                status=current.status.value,
            )
        self._logger.info(
            "lifecycle.updated",
            evaluation_id=evaluation_id,
            fields=sorted(changes.model_fields_set),
            updated_by=caller.id,
        )
        return updated

    def transition(
        self,
        caller: Caller,
        evaluation_id: str,
        target: EvaluationStatus | str,
    ) -> EvaluationRecord:
        self._require_coordinator(caller)
        target_status = self._parse_status(target)
        record = self._load(evaluation_id)
        self._check_transition(record, target_status)
        if target_status is EvaluationStatus.ACTIVE:
            self._validate_criteria(record.criteria)

        updated = self._store.update_evaluation(
            evaluation_id,
            {
                "status": target_status,
                "updated_by": caller.id,
                "updated_at": self._now_provider(),
            },
            expected_status=record.status,
        )
        if updated is None:
            current = self._load(evaluation_id)
            raise InvalidTransition(
                f"Cannot move evaluation from {current.status.value} to {target_status.value}",
                evaluation_id=evaluation_id,
                source=current.status.value,
                target=target_status.value,
            )
        self._logger.info(
            "lifecycle.transition",
            evaluation_id=evaluation_id,
            source=record.status.value,
            target=target_status.value,
            actor=caller.id,
        )
        return updated

    def delete(self, caller: Caller, evaluation_id: str) -> None:
        """Delete a record; only allowed while it has no responses."""
        self._require_coordinator(caller)
        record = self._load(evaluation_id)
        if record.response_count > 0:
            raise HasResponses(
                "Cannot delete an evaluation with responses",
                evaluation_id=evaluation_id,
                response_count=record.response_count,
            )
        if not self._store.delete_evaluation(evaluation_id):
            current = self._load(evaluation_id)
            raise HasResponses(
                "Cannot delete an evaluation with responses",
                evaluation_id=evaluation_id,
                response_count=current.response_count,
            )
        self._logger.info("lifecycle.deleted", evaluation_id=evaluation_id, actor=caller.id)

    @staticmethod
    def _require_coordinator(caller: Caller) -> None:
        if not caller.is_coordinator:
            raise Forbidden(
                f"Role {caller.role.value} may not manage evaluations",
                caller_id=caller.id,
            )

    def _load(self, evaluation_id: str) -> EvaluationRecord:
        record = self._store.get_evaluation(evaluation_id)
        if record is None:
            raise NotFound(evaluation_id)
        return record

    @staticmethod
    def _parse_status(target: EvaluationStatus | str) -> EvaluationStatus:
        try:
            return EvaluationStatus(str(getattr(target, "value", target)).strip().lower())
        except ValueError as exc:
            raise InvalidTransition(f"Unknown status: {target!r}") from exc

    @staticmethod
    def _check_transition(record: EvaluationRecord, target: EvaluationStatus) -> None:
        if TRANSITIONS.get(record.status) is not target:
            raise InvalidTransition(
                f"Cannot move evaluation from {record.status.value} to {target.value}",
                evaluation_id=record.id,
                source=record.status.value,
                target=target.value,
            )

    @staticmethod
    def _validate_fields(fields: dict[str, Any]) -> None:
        start, end = fields["start_date"], fields["end_date"]
        if end <= start:
            raise InvalidEvaluation(
                "End date must be after start date",
                start_date=start.isoformat(),
                end_date=end.isoformat(),
            )
        category = fields["category"]
        if category.has_subject and not fields.get("instructor_id"):
            raise InvalidEvaluation(
                f"{category.value} evaluations must name the evaluated instructor",
            )

