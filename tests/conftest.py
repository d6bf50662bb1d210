from __future__ import annotations

from pathlib import Path
from typing import Any

import pendulum
import pytest

from facultyeval.container import EvaluationContainer, create_container
from facultyeval.schemas import Caller, EvaluationDraft, ResponseSubmission, ScoreLine

NOW = pendulum.datetime(2025, 3, 10, 12, 0, 0, tz="UTC")

USERS: list[dict[str, Any]] = [
    {"user_id": "qo-1", "role": "quality_officer", "department": "Quality"},
    {"user_id": "admin-1", "role": "admin"},
    {"user_id": "stu-cs-1", "role": "Student", "department": "CS"},
    {"user_id": "stu-cs-2", "role": "Student", "department": "CS"},
    {"user_id": "stu-math-1", "role": "Student", "department": "Math"},
    {"user_id": "ins-cs-1", "role": "instructor", "department": "CS"},
    {"user_id": "ins-cs-2", "role": "instructor", "department": "CS"},
    {"user_id": "ins-math-1", "role": "instructor", "department": "Math"},
    {"user_id": "head-cs", "role": "department_head", "department": "CS"},
    {"user_id": "head-math", "role": "department_head", "department": "Math"},
    {"user_id": "dean-cs", "role": "college_dean", "department": "CS"},
]


class FixedClock:
    """Mutable clock handed to the engine as ``now_provider``."""

    def __init__(self, now: pendulum.DateTime = NOW) -> None:
        self.now = now

    def __call__(self) -> pendulum.DateTime:
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'evaluations.db'}"


@pytest.fixture
def container(database_url: str, clock: FixedClock) -> EvaluationContainer:
    container = create_container(
        settings={
            "storage": {"url": database_url},
            "directory": {"users": USERS},
        },
        now_provider=clock,
    )
    container.store().create_schema()
    return container


@pytest.fixture
def service(container: EvaluationContainer):
    return container.service()


@pytest.fixture
def store(container: EvaluationContainer):
    return container.store()


def caller(user_id: str) -> Caller:
    for user in USERS:
        if user["user_id"] == user_id:
            return Caller(id=user_id, role=user["role"], department=user.get("department"))
    raise KeyError(user_id)


def build_draft(**kwargs: Any) -> EvaluationDraft:
    defaults: dict[str, Any] = {
        "title": "Spring teaching evaluation",
        "academic_year": "2024/2025",
        "semester": "Spring",
        "category": "Student",
        "department": "CS",
        "instructor_id": "ins-cs-1",
        "course_code": "CS101",
        "start_date": NOW.subtract(days=1),
        "end_date": NOW.add(days=7),
        "criteria": [
            {"id": "c1", "category": "Preparation", "description": "Comes prepared", "weight": 40},
            {"id": "c2", "category": "Clarity", "description": "Explains clearly", "weight": 30},
            {"id": "c3", "category": "Fairness", "description": "Grades fairly", "weight": 30},
        ],
    }
    defaults.update(kwargs)
    return EvaluationDraft.model_validate(defaults)


def build_submission(ratings: dict[str, float], **kwargs: Any) -> ResponseSubmission:
    return ResponseSubmission(
        scores=[ScoreLine(criterion_id=cid, rating=rating) for cid, rating in ratings.items()],
        **kwargs,
    )


FULL_MARKS = {"c1": 40, "c2": 30, "c3": 30}


@pytest.fixture
def active_evaluation(service):
    """Active student evaluation for CS whose window covers ``NOW``."""
    coordinator = caller("qo-1")
    record = service.create_evaluation(coordinator, build_draft())
    return service.transition_evaluation(coordinator, record.id, "active")
