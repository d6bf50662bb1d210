"""Evaluation record schemas."""

from __future__ import annotations

import enum
import math
import re
from datetime import datetime
from typing import Any
from uuid import uuid4

import pendulum
from pydantic import BaseModel, ConfigDict, Field, field_validator


def new_id() -> str:
    return uuid4().hex


def to_utc(value: datetime) -> pendulum.DateTime:
    """Coerce a datetime to a UTC pendulum instance; naive values are read as UTC."""
    return pendulum.instance(value).in_timezone("UTC")


class Semester(str, enum.Enum):
    SPRING = "Spring"
    SUMMER = "Summer"
    FALL = "Fall"


class EvaluationStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class EvaluationCategory(str, enum.Enum):
    """Audience of an evaluation round."""

    COLLEGE_TEAM = "CollegeTeam"
    SELF_EVALUATION = "SelfEvaluation"
    IMMEDIATE_SUPERVISOR = "ImmediateSupervisor"
    STUDENT = "Student"

    @classmethod
    def parse(cls, value: Any) -> "EvaluationCategory":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown evaluation category: {value!r}")
        token = re.sub(r"[\s_\-]+", "", value.strip().lower())
        for member in cls:
            if member.value.lower() == token:
                return member
        aliases = {
            "students": cls.STUDENT,
            "peer": cls.COLLEGE_TEAM,
            "peers": cls.COLLEGE_TEAM,
            "self": cls.SELF_EVALUATION,
            "supervisor": cls.IMMEDIATE_SUPERVISOR,
        }
        if token in aliases:
            return aliases[token]
        raise ValueError(f"Unknown evaluation category: {value!r}")

    @property
    def has_subject(self) -> bool:
        """Whether evaluators rate a named instructor other than through a course."""
        return self is not EvaluationCategory.STUDENT


class Criterion(BaseModel):
    """One scoring dimension with a point weight."""

    id: str = Field(default_factory=new_id)
    category: str
    description: str = ""
    weight: int

    model_config = ConfigDict(extra="forbid")


class EvaluationDraft(BaseModel):
    """Fields a coordinator supplies when creating an evaluation."""

    title: str
    description: str = ""
    academic_year: str
    semester: Semester
    category: EvaluationCategory
    criteria: list[Criterion] = Field(default_factory=list)
    start_date: datetime
    end_date: datetime
    department: str
    instructor_id: str | None = None
    course_code: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value: Any) -> EvaluationCategory:
        return EvaluationCategory.parse(value)

    @field_validator("start_date", "end_date")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return to_utc(value)

    @field_validator("title", "academic_year", "department")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class EvaluationChanges(BaseModel):
    """Partial metadata update; only fields that are set are applied."""

    title: str | None = None
    description: str | None = None
    academic_year: str | None = None
    semester: Semester | None = None
    category: EvaluationCategory | None = None
    criteria: list[Criterion] | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    department: str | None = None
    instructor_id: str | None = None
    course_code: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value: Any) -> EvaluationCategory | None:
        if value is None:
            return None
        return EvaluationCategory.parse(value)

    @field_validator("start_date", "end_date")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return to_utc(value) if value is not None else None

    @field_validator("title", "academic_year", "department")
    @classmethod
    def _not_blank(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class EvaluationRecord(BaseModel):
    """Stored evaluation round."""

    id: str
    title: str
    description: str = ""
    academic_year: str
    semester: Semester
    category: EvaluationCategory
    criteria: list[Criterion]
    status: EvaluationStatus = EvaluationStatus.DRAFT
    start_date: datetime
    end_date: datetime
    department: str
    instructor_id: str | None = None
    course_code: str | None = None
    created_by: str
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime
    response_ids: list[str] = Field(default_factory=list)
    average_score: float | None = None
    response_count: int = 0

    model_config = ConfigDict(extra="forbid")

    @field_validator("start_date", "end_date", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return to_utc(value)

    @property
    def duration_in_days(self) -> int:
        seconds = abs((self.end_date - self.start_date).total_seconds())
        return math.ceil(seconds / 86400)

    @property
    def total_weight(self) -> int:
        return sum(criterion.weight for criterion in self.criteria)

    def criterion(self, criterion_id: str) -> Criterion | None:
        for item in self.criteria:
            if item.id == criterion_id:
                return item
        return None

    def is_within_window(self, now: datetime) -> bool:
        return self.start_date <= now <= self.end_date

    def is_open(self, now: datetime) -> bool:
        """Accepting responses: active status and ``now`` inside the window."""
        return self.status is EvaluationStatus.ACTIVE and self.is_within_window(now)


class EvaluationSummary(BaseModel):
    """List view of an evaluation for a particular caller."""

    id: str
    title: str
    academic_year: str
    semester: Semester
    category: EvaluationCategory
    status: EvaluationStatus
    department: str
    instructor_id: str | None = None
    start_date: datetime
    end_date: datetime
    is_open: bool
    has_responded: bool = False
    average_score: float | None = None
    response_count: int = 0

    model_config = ConfigDict(extra="forbid")


class EvaluationFilters(BaseModel):
    """Optional list filters mirroring the evaluation list query parameters."""

    status: EvaluationStatus | None = None
    academic_year: str | None = None
    semester: Semester | None = None
    department: str | None = None
    category: EvaluationCategory | None = None
    instructor_id: str | None = None
    course_code: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value: Any) -> EvaluationCategory | None:
        if value is None:
            return None
        return EvaluationCategory.parse(value)

    def matches(self, record: EvaluationRecord) -> bool:
        for name in self.model_fields_set:
            expected = getattr(self, name)
            if expected is not None and getattr(record, name) != expected:
                return False
        return True
