"""SQLAlchemy ORM models for evaluations and responses."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import JSON, DateTime, Enum as SQLEnum, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ..schemas import (
    ClientMeta,
    Criterion,
    EvaluationCategory,
    EvaluationRecord,
    EvaluationStatus,
    Response,
    Role,
    ScoreLine,
    Semester,
)


class Base(DeclarativeBase):
    pass


def _enum_column(enum_type: type[enum.Enum], length: int = 32) -> SQLEnum:
    return SQLEnum(
        enum_type,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        length=length,
        validate_strings=True,
    )


class EvaluationRow(Base):
    """Evaluation round table."""

    __tablename__ = "evaluations"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    academic_year: Mapped[str] = mapped_column(String(32), nullable=False)
    semester: Mapped[Semester] = mapped_column(_enum_column(Semester), nullable=False)
    category: Mapped[EvaluationCategory] = mapped_column(_enum_column(EvaluationCategory), nullable=False)
    criteria: Mapped[List[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    status: Mapped[EvaluationStatus] = mapped_column(
        _enum_column(EvaluationStatus), nullable=False, index=True
    )
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    department: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    instructor_id: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    course_code: Mapped[Optional[str]] = mapped_column(String(64))
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    average_score: Mapped[Optional[float]] = mapped_column(Float)
    response_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    responses: Mapped[List["ResponseRow"]] = relationship(
        back_populates="evaluation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ResponseRow.submitted_at",
    )

    @classmethod
    def from_schema(cls, record: EvaluationRecord) -> "EvaluationRow":
        return cls(
            id=record.id,
            title=record.title,
            description=record.description,
            academic_year=record.academic_year,
            semester=record.semester,
            category=record.category,
            criteria=[criterion.model_dump(mode="json") for criterion in record.criteria],
            status=record.status,
            start_date=record.start_date,
            end_date=record.end_date,
            department=record.department,
            instructor_id=record.instructor_id,
            course_code=record.course_code,
            created_by=record.created_by,
            updated_by=record.updated_by,
            created_at=record.created_at,
            updated_at=record.updated_at,
            average_score=record.average_score,
            response_count=record.response_count,
        )

    def to_schema(self, response_ids: list[str] | None = None) -> EvaluationRecord:
        return EvaluationRecord(
            id=self.id,
            title=self.title,
            description=self.description or "",
            academic_year=self.academic_year,
            semester=self.semester,
            category=self.category,
            criteria=[Criterion.model_validate(item) for item in self.criteria],
            status=self.status,
            start_date=self.start_date,
            end_date=self.end_date,
            department=self.department,
            instructor_id=self.instructor_id,
            course_code=self.course_code,
            created_by=self.created_by,
            updated_by=self.updated_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
            response_ids=list(response_ids or []),
            average_score=self.average_score,
            response_count=self.response_count,
        )


class ResponseRow(Base):
    """Submitted response table; one row per evaluator and evaluation."""

    __tablename__ = "responses"
    __table_args__ = (
        UniqueConstraint("evaluation_id", "evaluator_id", name="uq_responses_evaluation_evaluator"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    evaluation_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False
    )
    evaluator_id: Mapped[str] = mapped_column(String(64), nullable=False)
    evaluator_role: Mapped[Role] = mapped_column(_enum_column(Role), nullable=False)
    course_code: Mapped[Optional[str]] = mapped_column(String(64))
    scores: Mapped[List[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    overall_comment: Mapped[Optional[str]] = mapped_column(Text)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(512))

    evaluation: Mapped[EvaluationRow] = relationship(back_populates="responses")

    @classmethod
    def from_schema(cls, response: Response) -> "ResponseRow":
        return cls(
            id=response.id,
            evaluation_id=response.evaluation_id,
            evaluator_id=response.evaluator_id,
            evaluator_role=response.evaluator_role,
            course_code=response.course_code,
            scores=[line.model_dump(mode="json") for line in response.scores],
            overall_comment=response.overall_comment,
            submitted_at=response.submitted_at,
            ip_address=response.client_meta.ip_address,
            user_agent=response.client_meta.user_agent,
        )

    def to_schema(self) -> Response:
        return Response(
            id=self.id,
            evaluation_id=self.evaluation_id,
            evaluator_id=self.evaluator_id,
            evaluator_role=self.evaluator_role,
            course_code=self.course_code,
            scores=[ScoreLine.model_validate(item) for item in self.scores],
            overall_comment=self.overall_comment,
            submitted_at=self.submitted_at,
            client_meta=ClientMeta(ip_address=self.ip_address, user_agent=self.user_agent),
        )
