from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pendulum
import pytest
from sqlalchemy import event, inspect
from sqlalchemy.dialects import postgresql

from conftest import NOW, build_draft
from facultyeval.core import recompute
from facultyeval.schemas import EvaluationRecord, EvaluationStatus, Response, Role, ScoreLine
from facultyeval.storage import (
    DuplicateResponse,
    SqlEvaluationStore,
    StaleEvaluation,
    StorageError,
    lock_evaluation,
)


@pytest.fixture
def sql_store(tmp_path: Path) -> SqlEvaluationStore:
    store = SqlEvaluationStore(f"sqlite:///{tmp_path / 'store.db'}")
    store.create_schema()
    return store


def build_record(status: EvaluationStatus = EvaluationStatus.ACTIVE, **kwargs) -> EvaluationRecord:
    draft = build_draft()
    payload = draft.model_dump()
    payload.update(
        id="E-1",
        status=status,
        created_by="qo-1",
        created_at=NOW,
        updated_at=NOW,
    )
    payload.update(kwargs)
    return EvaluationRecord.model_validate(payload)


def build_response(response_id: str, evaluator_id: str, rating: float = 10) -> Response:
    return Response(
        id=response_id,
        evaluation_id="E-1",
        evaluator_id=evaluator_id,
        evaluator_role=Role.STUDENT,
        scores=[
            ScoreLine(criterion_id="c1", rating=rating),
            ScoreLine(criterion_id="c2", rating=rating),
            ScoreLine(criterion_id="c3", rating=rating),
        ],
        submitted_at=NOW,
    )


def test_schema_declares_unique_evaluator_constraint(sql_store):
    constraints = inspect(sql_store.engine).get_unique_constraints("responses")

    assert any(
        set(item["column_names"]) == {"evaluation_id", "evaluator_id"}
        for item in constraints
    )


def test_round_trip_preserves_timezone_and_criteria(sql_store):
    sql_store.add_evaluation(build_record())

    loaded = sql_store.get_evaluation("E-1")

    assert loaded.start_date == NOW.subtract(days=1)
    assert loaded.start_date.tzinfo is not None
    assert [c.weight for c in loaded.criteria] == [40, 30, 30]
    assert loaded.status is EvaluationStatus.ACTIVE


def test_record_response_updates_aggregate_atomically(sql_store):
    sql_store.add_evaluation(build_record())

    first = sql_store.record_response(build_response("r1", "u1", 10), recompute)
    second = sql_store.record_response(build_response("r2", "u2", 20), recompute)

    assert (first.response_count, first.average_score) == (1, 30)
    assert (second.response_count, second.average_score) == (2, 45)
    stored = sql_store.get_evaluation("E-1")
    assert stored.response_ids == ["r1", "r2"]
    assert stored.average_score == 45


def test_unique_index_rejects_second_row(sql_store):
    sql_store.add_evaluation(build_record())
    sql_store.record_response(build_response("r1", "u1"), recompute)

    with pytest.raises(DuplicateResponse):
        sql_store.record_response(build_response("r2", "u1"), recompute)

    assert [r.id for r in sql_store.list_responses("E-1")] == ["r1"]
    assert sql_store.get_evaluation("E-1").response_count == 1


def test_record_response_requires_active_row(sql_store):
    sql_store.add_evaluation(build_record(status=EvaluationStatus.COMPLETED))

    with pytest.raises(StaleEvaluation):
        sql_store.record_response(build_response("r1", "u1"), recompute)

    assert sql_store.list_responses("E-1") == []


def test_conditional_update_checks_status(sql_store):
    sql_store.add_evaluation(build_record(status=EvaluationStatus.DRAFT))

    assert sql_store.update_evaluation("E-1", {"title": "x"}, expected_status=EvaluationStatus.ACTIVE) is None
    updated = sql_store.update_evaluation(
        "E-1",
        {"title": "Renamed", "updated_at": pendulum.now("UTC")},
        expected_status=EvaluationStatus.DRAFT,
    )
    assert updated.title == "Renamed"


def test_delete_refused_once_responses_exist(sql_store):
    sql_store.add_evaluation(build_record())
    sql_store.record_response(build_response("r1", "u1"), recompute)

    assert sql_store.delete_evaluation("E-1") is False
    assert sql_store.get_evaluation("E-1") is not None


def test_iter_evaluations_newest_first(sql_store):
    sql_store.add_evaluation(build_record(id="old", created_at=NOW.subtract(days=2)))
    sql_store.add_evaluation(build_record(id="new", created_at=NOW))

    assert [r.id for r in sql_store.iter_evaluations()] == ["new", "old"]


def test_storage_faults_are_wrapped(tmp_path: Path):
    store = SqlEvaluationStore(f"sqlite:///{tmp_path / 'empty.db'}")

    with pytest.raises(StorageError):
        store.get_evaluation("E-1")


def test_aggregate_writers_lock_the_evaluation_row():
    compiled = str(lock_evaluation("E-1").compile(dialect=postgresql.dialect()))

    assert "FOR UPDATE" in compiled
    assert "evaluations" in compiled


def test_record_response_locks_before_inserting(sql_store):
    sql_store.add_evaluation(build_record())
    statements: list[str] = []

    def capture(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement.lstrip().upper())

    event.listen(sql_store.engine, "before_cursor_execute", capture)
    try:
        sql_store.record_response(build_response("r1", "u1"), recompute)
    finally:
        event.remove(sql_store.engine, "before_cursor_execute", capture)

    first_insert = next(idx for idx, sql in enumerate(statements) if sql.startswith("INSERT INTO RESPONSES"))
    assert any(sql.startswith("SELECT") and "FROM EVALUATIONS" in sql for sql in statements[:first_insert])


def test_listing_reads_response_ids_only(sql_store):
    sql_store.add_evaluation(build_record())
    sql_store.record_response(build_response("r1", "u1"), recompute)
    sql_store.record_response(build_response("r2", "u2"), recompute)
    statements: list[str] = []

    def capture(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(sql_store.engine, "before_cursor_execute", capture)
    try:
        records = list(sql_store.iter_evaluations())
    finally:
        event.remove(sql_store.engine, "before_cursor_execute", capture)

    assert records[0].response_ids == ["r1", "r2"]
    assert not any("responses.scores" in statement for statement in statements)


def test_in_memory_store_serializes_threads():
    store = SqlEvaluationStore("sqlite://")
    store.create_schema()
    store.add_evaluation(build_record())

    with ThreadPoolExecutor(max_workers=6) as pool:
        list(
            pool.map(
                lambda idx: store.record_response(build_response(f"r{idx}", f"u{idx}"), recompute),
                range(12),
            )
        )

    stored = store.get_evaluation("E-1")
    assert stored.response_count == 12
    assert len(store.list_responses("E-1")) == 12
