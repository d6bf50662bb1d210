"""SQLAlchemy-backed evaluation store."""

from __future__ import annotations

import threading
from collections import defaultdict
from contextlib import contextmanager, nullcontext
from typing import TYPE_CHECKING, Any, Callable, ContextManager, Iterable, Iterator

import structlog
from sqlalchemy import Select, create_engine, delete, exists, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..schemas import EvaluationRecord, EvaluationStatus, Response
from .errors import DuplicateResponse, StaleEvaluation, StorageError
from .models import Base, EvaluationRow, ResponseRow

if TYPE_CHECKING:
    from ..core.aggregator import Aggregate

Recompute = Callable[[Iterable[Response]], "Aggregate"]


def build_engine(url: str, *, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections are shared across threads."""
    if url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)


def lock_evaluation(evaluation_id: str) -> Select:
    """Row-locking read that serializes writers of one evaluation's aggregate."""
    return (
        select(EvaluationRow.id, EvaluationRow.status)
        .where(EvaluationRow.id == evaluation_id)
        .with_for_update()
    )


class SqlEvaluationStore:
    """Durable store for evaluation records and their responses."""

    def __init__(self, url: str = "sqlite://", *, echo: bool = False, engine: Engine | None = None) -> None:
        self._engine = engine or build_engine(url, echo=echo)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._logger = structlog.get_logger(__name__)
        # a StaticPool hands the same DBAPI connection to every thread
        self._lock: ContextManager[Any] = (
            threading.RLock() if isinstance(self._engine.pool, StaticPool) else nullcontext()
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        with self._guard("create_schema"):
            Base.metadata.create_all(self._engine)

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            with self._lock:
                yield
        except SQLAlchemyError as exc:
            self._logger.error("storage.failure", operation=operation, error=str(exc))
            raise StorageError(f"Storage operation {operation!r} failed") from exc

    @contextmanager
    def _read(self, operation: str) -> Iterator[Session]:
        with self._guard(operation), self._session_factory() as session:
            yield session

    @staticmethod
    def _response_ids(session: Session, evaluation_id: str | None = None) -> dict[str, list[str]]:
        query = select(ResponseRow.evaluation_id, ResponseRow.id).order_by(
            ResponseRow.submitted_at, ResponseRow.id
        )
        if evaluation_id is not None:
            query = query.where(ResponseRow.evaluation_id == evaluation_id)
        grouped: dict[str, list[str]] = defaultdict(list)
        for owner, response_id in session.execute(query):
            grouped[owner].append(response_id)
        return grouped

    # evaluations -------------------------------------------------------

    def add_evaluation(self, record: EvaluationRecord) -> EvaluationRecord:
        with self._guard("add_evaluation"), self._session_factory.begin() as session:
            session.add(EvaluationRow.from_schema(record))
        return record

    def get_evaluation(self, evaluation_id: str) -> EvaluationRecord | None:
        with self._read("get_evaluation") as session:
            row = session.get(EvaluationRow, evaluation_id)
            if row is None:
                return None
            return row.to_schema(self._response_ids(session, evaluation_id)[evaluation_id])

    def iter_evaluations(self) -> Iterator[EvaluationRecord]:
        """Yield records newest first; each call runs a fresh query."""
        with self._read("iter_evaluations") as session:
            rows = session.scalars(
                select(EvaluationRow).order_by(EvaluationRow.created_at.desc(), EvaluationRow.id)
            ).all()
            response_ids = self._response_ids(session)
            records = [row.to_schema(response_ids.get(row.id, [])) for row in rows]
        yield from records

    def update_evaluation(
        self,
        evaluation_id: str,
        values: dict[str, Any],
        *,
        expected_status: EvaluationStatus,
    ) -> EvaluationRecord | None:
        """Apply ``values`` only while the row still has ``expected_status``.

        Returns ``None`` when no row matched.
        """
        with self._guard("update_evaluation"), self._session_factory.begin() as session:
            result = session.execute(
                update(EvaluationRow)
                .where(
                    EvaluationRow.id == evaluation_id,
                    EvaluationRow.status == expected_status,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return None
            row = session.get(EvaluationRow, evaluation_id, populate_existing=True)
            if row is None:
                return None
            return row.to_schema(self._response_ids(session, evaluation_id)[evaluation_id])

    def delete_evaluation(self, evaluation_id: str) -> bool:
        """Delete the record if it has no responses; ``False`` when nothing was deleted."""
        with self._guard("delete_evaluation"), self._session_factory.begin() as session:
            result = session.execute(
                delete(EvaluationRow)
                .where(
                    EvaluationRow.id == evaluation_id,
                    EvaluationRow.response_count == 0,
                    ~exists().where(ResponseRow.evaluation_id == evaluation_id),
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    # responses ---------------------------------------------------------

    def has_response(self, evaluation_id: str, evaluator_id: str) -> bool:
        with self._read("has_response") as session:
            found = session.scalar(
                select(ResponseRow.id).where(
                    ResponseRow.evaluation_id == evaluation_id,
                    ResponseRow.evaluator_id == evaluator_id,
                )
            )
            return found is not None

    def list_responses(self, evaluation_id: str) -> list[Response]:
        with self._read("list_responses") as session:
            rows = session.scalars(
                select(ResponseRow)
                .where(ResponseRow.evaluation_id == evaluation_id)
                .order_by(ResponseRow.submitted_at, ResponseRow.id)
            ).all()
            return [row.to_schema() for row in rows]

    def record_response(self, response: Response, recompute: Recompute) -> Aggregate:
        """Insert ``response`` and refresh the evaluation aggregate in one transaction.

        The evaluation row is locked first so concurrent writers recompute in
        turn. The unique ``(evaluation_id, evaluator_id)`` index decides
        duplicates; the aggregate update only lands while the evaluation is
        still active.
        """
        with self._lock:
            try:
                with self._session_factory.begin() as session:
                    locked = session.execute(lock_evaluation(response.evaluation_id)).first()
                    if locked is None or locked.status != EvaluationStatus.ACTIVE:
                        raise StaleEvaluation(response.evaluation_id)
                    session.add(ResponseRow.from_schema(response))
                    session.flush()
                    rows = session.scalars(
                        select(ResponseRow).where(ResponseRow.evaluation_id == response.evaluation_id)
                    ).all()
                    aggregate = recompute(row.to_schema() for row in rows)
                    result = session.execute(
                        update(EvaluationRow)
                        .where(
                            EvaluationRow.id == response.evaluation_id,
                            EvaluationRow.status == EvaluationStatus.ACTIVE,
                        )
                        .values(
                            average_score=aggregate.average_score,
                            response_count=aggregate.response_count,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        raise StaleEvaluation(response.evaluation_id)
            except IntegrityError as exc:
                if self.has_response(response.evaluation_id, response.evaluator_id):
                    raise DuplicateResponse(response.evaluation_id, response.evaluator_id) from exc
                self._logger.error("storage.integrity_failure", evaluation_id=response.evaluation_id, error=str(exc))
                raise StorageError("Storage operation 'record_response' failed") from exc
            except SQLAlchemyError as exc:
                self._logger.error("storage.failure", operation="record_response", error=str(exc))
                raise StorageError("Storage operation 'record_response' failed") from exc
        return aggregate
