from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from facultyeval.container import create_container
from facultyeval.core import InvalidCriteria
from facultyeval.schemas import Criterion
from facultyeval.schemas.config import AppConfig, load_config


def test_create_container_with_overrides(tmp_path: Path):
    container = create_container(
        settings={
            "storage": {"url": f"sqlite:///{tmp_path / 'c.db'}"},
            "criteria": {"required_total": 10},
            "directory": {"users": [{"user_id": "s1", "role": "Student", "department": "CS"}]},
        }
    )

    validator = container.criteria_validator()
    directory = container.directory()

    assert validator.required_total == 10
    assert directory.resolve_caller("s1").department == "CS"
    assert container.store().engine.url.database.endswith("c.db")
    assert container.resolver() is container.resolver()


def test_null_total_disables_invariant(tmp_path: Path):
    container = create_container(
        settings={
            "storage": {"url": f"sqlite:///{tmp_path / 'c.db'}"},
            "criteria": {"required_total": None},
        }
    )

    accepted = container.criteria_validator()([Criterion(category="A", weight=25)])

    assert len(accepted) == 1


def test_default_policy_requires_hundred(tmp_path: Path):
    container = create_container(settings={"storage": {"url": f"sqlite:///{tmp_path / 'c.db'}"}})

    with pytest.raises(InvalidCriteria):
        container.criteria_validator()([Criterion(category="A", weight=25)])


def test_load_config_validation():
    data = {
        "storage": {"url": "sqlite://"},
        "criteria": {"required_total": 100},
        "logging": {"level": "DEBUG"},
    }
    app_config = load_config(data)
    assert isinstance(app_config, AppConfig)
    settings = app_config.to_settings()
    assert settings["storage"]["url"] == "sqlite://"
    assert app_config.logging.level == "DEBUG"


def test_load_config_rejects_non_mapping():
    with pytest.raises(ValidationError):
        load_config(["not", "a", "mapping"])
