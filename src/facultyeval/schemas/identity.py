"""Caller identity and role vocabulary."""

from __future__ import annotations

import enum
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


def _normalize_token(value: str) -> str:
    return re.sub(r"[\s_\-]+", "", value.strip().lower())


class Role(str, enum.Enum):
    """Closed set of roles known to the engine."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"
    DEPARTMENT_HEAD = "department_head"
    COLLEGE_DEAN = "college_dean"
    VICE_ACADEMY = "vice_academy"
    HUMAN_RESOURCE = "human_resource"
    QUALITY_OFFICER = "quality_officer"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Map free-form role strings (``"Student"``, ``"Human_resours"``) to a member."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown role: {value!r}")
        token = _normalize_token(value)
        role = _ROLE_ALIASES.get(token)
        if role is None:
            raise ValueError(f"Unknown role: {value!r}")
        return role


_ROLE_ALIASES: dict[str, Role] = {_normalize_token(role.value): role for role in Role}
_ROLE_ALIASES.update(
    {
        "students": Role.STUDENT,
        "instructors": Role.INSTRUCTOR,
        "lecturer": Role.INSTRUCTOR,
        "humanresours": Role.HUMAN_RESOURCE,
        "hr": Role.HUMAN_RESOURCE,
        "viceacademic": Role.VICE_ACADEMY,
        "dean": Role.COLLEGE_DEAN,
        "collegedien": Role.COLLEGE_DEAN,
        "qualityoffice": Role.QUALITY_OFFICER,
        "administrator": Role.ADMIN,
    }
)

COORDINATOR_ROLES: frozenset[Role] = frozenset({Role.QUALITY_OFFICER, Role.ADMIN})
REVIEWER_ROLES: frozenset[Role] = frozenset(
    {Role.DEPARTMENT_HEAD, Role.COLLEGE_DEAN, Role.VICE_ACADEMY, Role.HUMAN_RESOURCE}
)
SUPERVISOR_ROLES: frozenset[Role] = frozenset({Role.DEPARTMENT_HEAD})


class Caller(BaseModel):
    """Identity resolved by the session collaborator for one request."""

    id: str
    role: Role
    department: str | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value: Any) -> Role:
        return Role.parse(value)

    @property
    def is_coordinator(self) -> bool:
        return self.role in COORDINATOR_ROLES
