"""Pydantic configuration schema for CLI YAML input."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .identity import Role


class StorageConfig(BaseModel):
    url: str = "sqlite:///facultyeval.db"
    echo: bool = False


class CriteriaConfig(BaseModel):
    required_total: int | None = 100


class DirectoryUser(BaseModel):
    user_id: str
    role: Role
    department: str | None = None
    full_name: str | None = None

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value: Any) -> Role:
        return Role.parse(value)


class DirectoryConfig(BaseModel):
    users: list[DirectoryUser] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    storage: StorageConfig = Field(default_factory=StorageConfig)
    criteria: CriteriaConfig = Field(default_factory=CriteriaConfig)
    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def to_settings(self) -> dict[str, Any]:
        return {
            "storage": self.storage.model_dump(),
            "criteria": self.criteria.model_dump(),
            "directory": self.directory.model_dump(mode="json"),
        }


def load_config(raw: Any) -> AppConfig:
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
