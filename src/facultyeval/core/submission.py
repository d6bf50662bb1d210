"""Response submission engine."""

from __future__ import annotations

from collections import Counter
from typing import Any, Callable

import pendulum
import structlog

from ..schemas import (
    Caller,
    ClientMeta,
    EvaluationRecord,
    EvaluationStatus,
    Response,
    ResponseSubmission,
    SubmissionReceipt,
)
from ..schemas.evaluation import new_id
from ..storage import DuplicateResponse, EvaluationStore, StaleEvaluation
from .aggregator import recompute
from .errors import AlreadySubmitted, InvalidSubmission, NotFound, OutOfRange, OutOfWindow
from .visibility import VisibilityResolver


class SubmissionEngine:
    """Validate and record evaluator responses, at most one per evaluator."""

    def __init__(
        self,
        store: EvaluationStore,
        resolver: VisibilityResolver,
        *,
        now_provider: Callable[[], Any] | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._now_provider = now_provider or (lambda: pendulum.now("UTC"))
        self._logger = structlog.get_logger(__name__)

    def submit(
        self,
        caller: Caller,
        evaluation_id: str,
        submission: ResponseSubmission,
        client_meta: ClientMeta | None = None,
    ) -> SubmissionReceipt:
        record = self._store.get_evaluation(evaluation_id)
        if record is None:
            raise NotFound(evaluation_id)

        if not self._resolver.can_submit(caller, evaluation_id, record=record):
            self._logger.info("submission.duplicate", evaluation_id=evaluation_id, evaluator_id=caller.id, stage="precheck")
            raise AlreadySubmitted(
                "A response was already submitted for this evaluation",
                evaluation_id=evaluation_id,
            )

        now = self._now_provider()
        self._ensure_open(record, now)
        self._validate_structure(record, submission)
        self._validate_ranges(record, submission)

        response = Response(
            id=new_id(),
            evaluation_id=record.id,
            evaluator_id=caller.id,
            evaluator_role=caller.role,
            course_code=record.course_code,
            scores=submission.scores,
            overall_comment=submission.overall_comment,
            submitted_at=now,
            client_meta=client_meta or ClientMeta(),
        )

        try:
            aggregate = self._store.record_response(response, recompute)
        except DuplicateResponse as exc:
            self._logger.info("submission.duplicate", evaluation_id=evaluation_id, evaluator_id=caller.id, stage="commit")
            raise AlreadySubmitted(
                "A response was already submitted for this evaluation",
                evaluation_id=evaluation_id,
            ) from exc
        except StaleEvaluation as exc:
            raise OutOfWindow(
                "This evaluation is not currently accepting responses",
                evaluation_id=evaluation_id,
            ) from exc

        self._logger.info(
            "submission.accepted",
            evaluation_id=evaluation_id,
            evaluator_id=caller.id,
            response_id=response.id,
            score=response.total_score,
            average_score=aggregate.average_score,
            response_count=aggregate.response_count,
        )
        return SubmissionReceipt(
            response=response,
            average_score=aggregate.average_score,
            response_count=aggregate.response_count,
        )

    @staticmethod
    def _ensure_open(record: EvaluationRecord, now: Any) -> None:
        if record.status is not EvaluationStatus.ACTIVE:
            raise OutOfWindow(
                "This evaluation is not currently active",
                evaluation_id=record.id,
                status=record.status.value,
            )
        if not record.is_within_window(now):
            raise OutOfWindow(
                "This evaluation is not currently accepting responses",
                evaluation_id=record.id,
                start_date=record.start_date.isoformat(),
                end_date=record.end_date.isoformat(),
            )

    @staticmethod
    def _validate_structure(record: EvaluationRecord, submission: ResponseSubmission) -> None:
        expected = {criterion.id for criterion in record.criteria}
        counts = Counter(line.criterion_id for line in submission.scores)

        duplicated = sorted(cid for cid, count in counts.items() if count > 1)
        unknown = sorted(set(counts) - expected)
        missing = sorted(expected - set(counts))
        if duplicated or unknown or missing:
            raise InvalidSubmission(
                "Scores must cover every criterion exactly once",
                missing=missing,
                unknown=unknown,
                duplicated=duplicated,
            )

    @staticmethod
    def _validate_ranges(record: EvaluationRecord, submission: ResponseSubmission) -> None:
        for line in submission.scores:
            criterion = record.criterion(line.criterion_id)
            if criterion is None:  # pragma: no cover - guarded by structure check
                continue
            if not 0 <= line.rating <= criterion.weight:
                raise OutOfRange(
                    f"Rating must be between 0 and {criterion.weight}",
                    criterion_id=criterion.id,
                    rating=line.rating,
                    weight=criterion.weight,
                )
