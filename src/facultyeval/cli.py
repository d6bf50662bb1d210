"""Typer CLI entrypoint for the evaluation engine."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import structlog
import typer
import yaml
from pydantic import BaseModel, ValidationError

from .container import EvaluationContainer, create_container
from .core import EvaluationError
from .logging import bind_request, configure_logging
from .schemas import (
    Caller,
    ClientMeta,
    EvaluationChanges,
    EvaluationDraft,
    EvaluationFilters,
    ResponseSubmission,
)
from .schemas.config import load_config
from .service import DEFAULT_PAGE_SIZE
from .storage import StorageError

app = typer.Typer(help="Evaluation lifecycle and response aggregation CLI.", no_args_is_help=True)

_state: dict[str, Any] = {}


@app.callback()
def main_options(
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    database: Optional[str] = typer.Option(None, help="SQLAlchemy database URL (overrides config)."),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
) -> None:
    """Load configuration shared by every command."""
    settings: dict[str, Any] = {}
    if config:
        with config.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
            if not isinstance(loaded, dict):
                raise typer.BadParameter("Config file must be a YAML object", param_hint="--config")
            settings = loaded
    if database:
        settings.setdefault("storage", {})["url"] = database

    try:
        app_config = load_config(settings)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc

    configure_logging(log_level or app_config.logging.level)
    _state["container"] = create_container(settings=settings, audit_log=audit_log)


def _container() -> EvaluationContainer:
    return _state["container"]


def _caller(user_id: str) -> Caller:
    try:
        return _container().directory().resolve_caller(user_id)
    except KeyError as exc:
        raise typer.BadParameter(f"Unknown user {user_id!r}", param_hint="--as") from exc


def _load_document(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix.lower() == ".json":
            return json.load(handle)
        return yaml.safe_load(handle)


def _emit(payload: Any) -> None:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    elif isinstance(payload, list):
        payload = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in payload]
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _run(command: str, user_id: str, action: Callable[[Caller], Any]) -> None:
    """Execute ``action`` and map outcomes to exit codes (1: business outcome, 2: fault)."""
    logger = structlog.get_logger(__name__)
    caller = _caller(user_id)
    bind_request(command=command, caller_id=caller.id, role=caller.role.value)
    try:
        result = action(caller)
    except EvaluationError as exc:
        logger.info("command.rejected", error=exc.code)
        _emit(exc.to_dict())
        raise typer.Exit(code=1) from exc
    except StorageError as exc:
        logger.exception("command.failed")
        typer.echo("Internal error: the evaluation store is unavailable.", err=True)
        raise typer.Exit(code=2) from exc
    if result is not None:
        _emit(result)


def _parse(model: type[BaseModel], raw: Any, param: str) -> Any:
    try:
        return model.model_validate(raw if raw is not None else {})
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint=param) from exc


@app.command("init-db")
def init_db() -> None:
    """Create the evaluation tables."""
    _container().store().create_schema()
    typer.echo("Database schema created.")


@app.command()
def create(
    draft: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Draft YAML/JSON path."),
    as_user: str = typer.Option(..., "--as", help="Acting user id."),
) -> None:
    """Create a draft evaluation."""
    payload = _parse(EvaluationDraft, _load_document(draft), "--draft")
    _run("create", as_user, lambda caller: _container().service().create_evaluation(caller, payload))


@app.command()
def update(
    evaluation_id: str = typer.Argument(..., help="Evaluation id."),
    changes: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Changes YAML/JSON path."),
    as_user: str = typer.Option(..., "--as", help="Acting user id."),
) -> None:
    """Edit a draft evaluation."""
    payload = _parse(EvaluationChanges, _load_document(changes), "--changes")
    _run(
        "update",
        as_user,
        lambda caller: _container().service().update_evaluation(caller, evaluation_id, payload),
    )


@app.command()
def transition(
    evaluation_id: str = typer.Argument(..., help="Evaluation id."),
    status: str = typer.Argument(..., help="Target status (active, completed, archived)."),
    as_user: str = typer.Option(..., "--as", help="Acting user id."),
) -> None:
    """Move an evaluation to its next status."""
    _run(
        "transition",
        as_user,
        lambda caller: _container().service().transition_evaluation(caller, evaluation_id, status),
    )


@app.command()
def delete(
    evaluation_id: str = typer.Argument(..., help="Evaluation id."),
    as_user: str = typer.Option(..., "--as", help="Acting user id."),
) -> None:
    """Delete an evaluation without responses."""

    def action(caller: Caller) -> dict[str, Any]:
        _container().service().delete_evaluation(caller, evaluation_id)
        return {"deleted": evaluation_id}

    _run("delete", as_user, action)


@app.command("list")
def list_evaluations(
    as_user: str = typer.Option(..., "--as", help="Acting user id."),
    status: Optional[str] = typer.Option(None, help="Filter by status."),
    academic_year: Optional[str] = typer.Option(None, help="Filter by academic year."),
    semester: Optional[str] = typer.Option(None, help="Filter by semester."),
    department: Optional[str] = typer.Option(None, help="Filter by department."),
    category: Optional[str] = typer.Option(None, help="Filter by category."),
    instructor: Optional[str] = typer.Option(None, help="Filter by evaluated instructor id."),
    course: Optional[str] = typer.Option(None, help="Filter by course code."),
    page: int = typer.Option(1, min=1, help="Page number, starting at 1."),
    limit: int = typer.Option(DEFAULT_PAGE_SIZE, min=1, help="Evaluations per page."),
) -> None:
    """List evaluations visible to the acting user."""
    raw = {
        "status": status,
        "academic_year": academic_year,
        "semester": semester,
        "department": department,
        "category": category,
        "instructor_id": instructor,
        "course_code": course,
    }
    filters = _parse(
        EvaluationFilters,
        {key: value for key, value in raw.items() if value is not None},
        "--status/--semester/--category",
    )
    _run(
        "list",
        as_user,
        lambda caller: _container().service().list_evaluations(caller, filters, page=page, limit=limit),
    )


@app.command()
def show(
    evaluation_id: str = typer.Argument(..., help="Evaluation id."),
    as_user: str = typer.Option(..., "--as", help="Acting user id."),
) -> None:
    """Show one evaluation."""
    _run("show", as_user, lambda caller: _container().service().get_evaluation(caller, evaluation_id))


@app.command()
def submit(
    evaluation_id: str = typer.Argument(..., help="Evaluation id."),
    scores: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Submission YAML/JSON path."),
    as_user: str = typer.Option(..., "--as", help="Acting user id."),
    ip_address: Optional[str] = typer.Option(None, help="Client IP address to record."),
    user_agent: Optional[str] = typer.Option(None, help="Client user agent to record."),
) -> None:
    """Submit a response to an evaluation."""
    payload = _parse(ResponseSubmission, _load_document(scores), "--scores")
    meta = ClientMeta(ip_address=ip_address, user_agent=user_agent)
    _run(
        "submit",
        as_user,
        lambda caller: _container().service().submit_response(caller, evaluation_id, payload, meta),
    )


@app.command()
def responses(
    evaluation_id: str = typer.Argument(..., help="Evaluation id."),
    as_user: str = typer.Option(..., "--as", help="Acting user id."),
) -> None:
    """List the responses of an evaluation (coordinators only)."""
    _run("responses", as_user, lambda caller: _container().service().list_responses(caller, evaluation_id))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
