"""Response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .evaluation import to_utc
from .identity import Role


class ScoreLine(BaseModel):
    """Rating given for one criterion."""

    criterion_id: str
    rating: float
    comment: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("comment")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class ClientMeta(BaseModel):
    """Transport details captured with a submission."""

    ip_address: str | None = None
    user_agent: str | None = None

    model_config = ConfigDict(extra="forbid")


class ResponseSubmission(BaseModel):
    """Payload an evaluator sends."""

    scores: list[ScoreLine] = Field(default_factory=list)
    overall_comment: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("overall_comment")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class Response(BaseModel):
    """Stored, immutable response."""

    id: str
    evaluation_id: str
    evaluator_id: str
    evaluator_role: Role
    course_code: str | None = None
    scores: list[ScoreLine]
    overall_comment: str | None = None
    submitted_at: datetime
    client_meta: ClientMeta = Field(default_factory=ClientMeta)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("submitted_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return to_utc(value)

    @property
    def total_score(self) -> float:
        return sum(line.rating for line in self.scores)


class SubmissionReceipt(BaseModel):
    """Result returned to the evaluator after a committed submission."""

    response: Response
    average_score: float | None
    response_count: int
