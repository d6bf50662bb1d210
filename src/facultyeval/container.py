"""Dependency injection container for the evaluation engine."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

from dependency_injector import containers, providers

from .core import (
    CriteriaPolicy,
    CriteriaValidator,
    LifecycleController,
    SubmissionEngine,
    VisibilityResolver,
)
from .directory import StaticUserDirectory
from .schemas.config import load_config
from .service import AuditLogger, EvaluationService
from .storage import SqlEvaluationStore


class EvaluationContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    now_provider = providers.Object(None)

    store = providers.Singleton(
        SqlEvaluationStore,
        url=config.storage.url,
        echo=config.storage.echo,
    )

    directory = providers.Singleton(
        StaticUserDirectory,
        users=config.directory.users,
    )

    criteria_policy = providers.Singleton(
        CriteriaPolicy,
        required_total=config.criteria.required_total,
    )

    criteria_validator = providers.Singleton(CriteriaValidator, policy=criteria_policy)

    resolver = providers.Singleton(
        VisibilityResolver,
        store=store,
        directory=directory,
        now_provider=now_provider,
    )

    lifecycle = providers.Singleton(
        LifecycleController,
        store=store,
        criteria_validator=criteria_validator,
        now_provider=now_provider,
    )

    submissions = providers.Singleton(
        SubmissionEngine,
        store=store,
        resolver=resolver,
        now_provider=now_provider,
    )

    audit_logger = providers.Object(None)

    service = providers.Factory(
        EvaluationService,
        store=store,
        resolver=resolver,
        lifecycle=lifecycle,
        submissions=submissions,
        audit_logger=audit_logger,
    )


def create_container(
    *,
    settings: dict | None = None,
    now_provider: Callable[[], Any] | None = None,
    audit_log: Path | None = None,
) -> EvaluationContainer:
    """Instantiate container with optional overrides."""

    container = EvaluationContainer()
    app_config = load_config(settings or {})
    container.config.from_dict(app_config.to_settings())

    if now_provider is not None:
        container.now_provider.override(providers.Object(now_provider))

    if audit_log is not None:
        container.audit_logger.override(providers.Singleton(AuditLogger, audit_log))

    return container
