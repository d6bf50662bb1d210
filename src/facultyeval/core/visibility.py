"""Visibility and eligibility rules for evaluation records."""

from __future__ import annotations

import enum
from typing import Any, Callable, Iterator

import pendulum
import structlog

from ..directory import UserDirectory, department_of
from ..schemas import (
    REVIEWER_ROLES,
    SUPERVISOR_ROLES,
    Caller,
    EvaluationCategory,
    EvaluationFilters,
    EvaluationRecord,
    EvaluationStatus,
    EvaluationSummary,
    Role,
)
from ..storage import EvaluationStore
from .errors import Forbidden, NotFound

SELF_EVALUATOR_ROLES: frozenset[Role] = frozenset({Role.INSTRUCTOR}) | SUPERVISOR_ROLES


class Scope(str, enum.Enum):
    """How a caller relates to one record."""

    COORDINATOR = "coordinator"
    EVALUATOR = "evaluator"
    REVIEWER = "reviewer"


class VisibilityResolver:
    """Decide which records a caller may list, read and submit to.

    Rules, first match wins:

    1. coordinators see everything;
    2. callers in the record's evaluator audience see it once published;
    3. department-scoped reviewers read published records of their department.

    Everything else is out of scope and reported as :class:`NotFound`.
    """

    def __init__(
        self,
        store: EvaluationStore,
        directory: UserDirectory,
        *,
        now_provider: Callable[[], Any] | None = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._now_provider = now_provider or (lambda: pendulum.now("UTC"))
        self._logger = structlog.get_logger(__name__)

    def scope_of(self, caller: Caller, record: EvaluationRecord) -> Scope | None:
        if caller.is_coordinator:
            return Scope.COORDINATOR
        if record.status is EvaluationStatus.DRAFT:
            return None
        if self.is_audience(caller, record):
            return Scope.EVALUATOR
        if caller.role in REVIEWER_ROLES and self._caller_department(caller) == record.department:
            return Scope.REVIEWER
        return None

    def is_audience(self, caller: Caller, record: EvaluationRecord) -> bool:
        """Whether ``caller`` is one of the evaluators the record's category targets."""
        category = record.category
        if category is EvaluationCategory.STUDENT:
            return (
                caller.role is Role.STUDENT
                and self._caller_department(caller) == record.department
            )
        if category is EvaluationCategory.SELF_EVALUATION:
            return (
                caller.role in SELF_EVALUATOR_ROLES
                and record.instructor_id is not None
                and caller.id == record.instructor_id
            )

        if record.instructor_id is None or caller.id == record.instructor_id:
            return False
        if category is EvaluationCategory.COLLEGE_TEAM:
            allowed = caller.role is Role.INSTRUCTOR
        else:
            allowed = caller.role in SUPERVISOR_ROLES
        return allowed and self._caller_department(caller) == self._subject_department(record)

    def list_visible(
        self,
        caller: Caller,
        filters: EvaluationFilters | None = None,
    ) -> Iterator[EvaluationSummary]:
        """Lazily yield summaries of records in the caller's scope.

        Nothing is cached; every call re-reads the store and the clock.
        """
        now = self._now_provider()
        for record in self._store.iter_evaluations():
            if filters is not None and not filters.matches(record):
                continue
            scope = self.scope_of(caller, record)
            if scope is None:
                continue
            has_responded = (
                scope is Scope.EVALUATOR and self._store.has_response(record.id, caller.id)
            )
            yield EvaluationSummary(
                id=record.id,
                title=record.title,
                academic_year=record.academic_year,
                semester=record.semester,
                category=record.category,
                status=record.status,
                department=record.department,
                instructor_id=record.instructor_id,
                start_date=record.start_date,
                end_date=record.end_date,
                is_open=record.is_open(now),
                has_responded=has_responded,
                average_score=record.average_score,
                response_count=record.response_count,
            )

    def get_visible(self, caller: Caller, evaluation_id: str) -> EvaluationRecord:
        record = self._store.get_evaluation(evaluation_id)
        if record is None or self.scope_of(caller, record) is None:
            raise NotFound(evaluation_id)
        return record

    def can_submit(
        self,
        caller: Caller,
        evaluation_id: str,
        *,
        record: EvaluationRecord | None = None,
    ) -> bool:
        """``True`` when the caller may submit; ``False`` if they already did.

        The ``False`` answer comes from a plain read and is advisory only.
        """
        if record is None:
            record = self._store.get_evaluation(evaluation_id)
        if record is None:
            raise NotFound(evaluation_id)
        scope = self.scope_of(caller, record)
        if scope is None:
            self._logger.info("visibility.out_of_scope", evaluation_id=evaluation_id, caller_id=caller.id)
            raise NotFound(evaluation_id)
        if scope is not Scope.EVALUATOR:
            raise Forbidden(
                "Caller may not submit responses to this evaluation",
                evaluation_id=evaluation_id,
                scope=scope.value,
            )
        return not self._store.has_response(record.id, caller.id)

    def _caller_department(self, caller: Caller) -> str | None:
        if caller.department:
            return caller.department
        return department_of(self._directory, caller.id)

    def _subject_department(self, record: EvaluationRecord) -> str | None:
        return department_of(self._directory, record.instructor_id) or record.department
