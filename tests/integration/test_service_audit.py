from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import FULL_MARKS, USERS, FixedClock, build_draft, build_submission, caller
from facultyeval import __version__
from facultyeval.container import create_container
from facultyeval.core import Forbidden
from facultyeval.schemas import ClientMeta


def test_service_writes_audit_lines(tmp_path: Path) -> None:
    audit_path = tmp_path / "audit" / "events.jsonl"
    container = create_container(
        settings={
            "storage": {"url": f"sqlite:///{tmp_path / 'audit.db'}"},
            "directory": {"users": USERS},
        },
        now_provider=FixedClock(),
        audit_log=audit_path,
    )
    container.store().create_schema()
    service = container.service()

    coordinator = caller("qo-1")
    record = service.create_evaluation(coordinator, build_draft())
    service.transition_evaluation(coordinator, record.id, "active")
    service.submit_response(
        caller("stu-cs-1"),
        record.id,
        build_submission(FULL_MARKS),
        ClientMeta(user_agent="pytest"),
    )

    lines = [json.loads(line) for line in audit_path.read_text(encoding="utf-8").splitlines()]

    assert [line["action"] for line in lines] == [
        "evaluation.created",
        "evaluation.transitioned",
        "response.submitted",
    ]
    assert all(line["evaluation_id"] == record.id for line in lines)
    assert all(line["app_version"] == __version__ for line in lines)
    assert lines[1]["status"] == "active"
    assert lines[2]["actor"] == "stu-cs-1"
    assert lines[2]["client_meta"]["user_agent"] == "pytest"


def test_rejected_calls_leave_no_audit_line(tmp_path: Path) -> None:
    audit_path = tmp_path / "events.jsonl"
    container = create_container(
        settings={"storage": {"url": f"sqlite:///{tmp_path / 'audit.db'}"}},
        audit_log=audit_path,
    )
    container.store().create_schema()

    with pytest.raises(Forbidden):
        container.service().create_evaluation(caller("stu-cs-1"), build_draft())

    assert not audit_path.exists()
