"""Typer CLI entrypoint for the workflow engine."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pendulum
import typer
from dependency_injector import providers

from .config import ConfigManager
from .container import WorkflowContainer, create_container
from .core import filter_snapshots, pipeline_stage, summarize
from .errors import EngineError, IllegalTransition, WriteConflict
from .logging import configure_logging
from .schemas import (
    Application,
    Assignment,
    AssignmentRequest,
    Employee,
    Interview,
    ProgressRecord,
    TrainingDefinition,
)
from .schemas.config import load_config
from .storage import AuditLogger, InMemoryRepository, OutputWriter, RecordLoader

app = typer.Typer(help="Hiring workflow and training-compliance CLI.")

_loader = RecordLoader()
_writer = OutputWriter()


def _bootstrap(config: Optional[Path], log_level: Optional[str], now: Optional[str]) -> WorkflowContainer:
    settings: dict[str, Any] = {}
    level = "INFO"
    if config:
        try:
            app_config = load_config(ConfigManager.from_file(config))
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="config") from exc
        settings = app_config.to_settings()
        level = app_config.logging.level
    try:
        configure_logging(log_level or level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="log_level") from exc
    return create_container(settings=settings, now_provider=_fixed_clock(now))


def _fixed_clock(now: Optional[str]):
    instant = _parse_datetime(now, "now")
    if instant is None:
        return None
    return lambda: instant


def _parse_datetime(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = pendulum.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid timestamp: {value}", param_hint=name) from exc
    # Durations and bare times parse too; only full date-times are accepted.
    if not isinstance(parsed, datetime):
        raise typer.BadParameter(f"Not a date-time: {value}", param_hint=name)
    return parsed


@app.command()
def actions(
    application: Path = typer.Option(..., exists=True, readable=True, dir_okay=False),
    interview: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False),
    output: Path = typer.Option(..., dir_okay=False, help="Output JSON path."),
    now: Optional[str] = typer.Option(None, help="Evaluate guards as of this ISO timestamp."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
) -> None:
    """List the actions currently legal for an application."""
    container = _bootstrap(config, log_level, now)
    app_record = _loader.load_one(application, Application)
    interview_record = _loader.load_one(interview, Interview) if interview else None

    legal = container.lifecycle().evaluate_actions(app_record, interview_record)
    _writer.write(
        output,
        {
            "application_id": app_record.id,
            "status": app_record.status.value,
            "accepted": app_record.accepted,
            "stage": pipeline_stage(app_record.status),
            "actions": sorted(item.value for item in legal),
        },
    )
    typer.echo(f"{len(legal)} legal actions for application {app_record.id}.")


@app.command()
def transition(
    application: Path = typer.Option(..., exists=True, readable=True, dir_okay=False),
    action: str = typer.Option(..., help="Action to apply."),
    output: Path = typer.Option(..., dir_okay=False, help="Output JSON path."),
    interview: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False),
    schedule_at: Optional[str] = typer.Option(None, help="Interview time for schedule_interview."),
    actor: Optional[str] = typer.Option(None, help="Who performs the action (audit only)."),
    now: Optional[str] = typer.Option(None, help="Apply as of this ISO timestamp."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
) -> None:
    """Apply one action to an application and write the next snapshot."""
    container = _bootstrap(config, log_level, now)
    app_record = _loader.load_one(application, Application)
    interview_record = _loader.load_one(interview, Interview) if interview else None
    container.repository.override(
        providers.Object(
            InMemoryRepository(
                applications=[app_record],
                interviews=[interview_record] if interview_record else [],
            )
        )
    )
    service = container.hiring_service(audit_logger=AuditLogger(audit_log) if audit_log else None)

    try:
        result = service.perform(
            app_record.id,
            action,
            schedule_at=_parse_datetime(schedule_at, "schedule_at"),
            actor=actor,
        )
    except IllegalTransition as exc:
        typer.echo(f"Illegal transition: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    except WriteConflict as exc:
        typer.echo(f"Conflicting write: {exc}", err=True)
        raise typer.Exit(code=3) from exc
    except EngineError as exc:
        typer.echo(f"Invalid input: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    _writer.write(
        output,
        {
            "action": result.action.value,
            "previous_status": result.previous_status.value,
            "application": result.application.model_dump(mode="json"),
            "interview": result.interview.model_dump(mode="json") if result.interview else None,
        },
    )
    typer.echo(
        f"Application {app_record.id}: {result.previous_status.value} -> "
        f"{result.application.status.value}."
    )


@app.command()
def assign(
    request: Path = typer.Option(..., exists=True, readable=True, dir_okay=False),
    employees: Path = typer.Option(..., exists=True, readable=True, dir_okay=False),
    catalog: Path = typer.Option(..., exists=True, readable=True, dir_okay=False),
    output: Path = typer.Option(..., dir_okay=False, help="Output JSON path."),
    progress: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False),
    assigned_by: Optional[str] = typer.Option(None),
    now: Optional[str] = typer.Option(None, help="Assignment timestamp (ISO)."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
) -> None:
    """Resolve an assignment request and create progress records."""
    container = _bootstrap(config, log_level, now)
    request_record = _loader.load_one(request, AssignmentRequest)
    roster = _loader.load_many(employees, Employee)
    trainings = _loader.load_many(catalog, TrainingDefinition)
    existing = _loader.load_many(progress, ProgressRecord) if progress else []

    container.repository.override(providers.Object(InMemoryRepository(progress=existing)))
    service = container.training_service(audit_logger=AuditLogger(audit_log) if audit_log else None)

    try:
        outcome = service.assign(
            request_record, roster, catalog=trainings, assigned_by=assigned_by
        )
    except WriteConflict as exc:
        typer.echo(f"Conflicting write: {exc}", err=True)
        raise typer.Exit(code=3) from exc
    except EngineError as exc:
        typer.echo(f"Invalid input: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    _writer.write(
        output,
        {
            "assignment": outcome.assignment.model_dump(mode="json") if outcome.assignment else None,
            "assignable": outcome.resolution.assignable,
            "blocked": [asdict(item) for item in outcome.resolution.blocked],
            "records": [record.model_dump(mode="json") for record in outcome.records],
        },
    )
    typer.echo(
        f"Assigned {len(outcome.records)} employees; "
        f"{len(outcome.resolution.blocked)} already hold the training."
    )


@app.command()
def compliance(
    employees: Path = typer.Option(..., exists=True, readable=True, dir_okay=False),
    progress: Path = typer.Option(..., exists=True, readable=True, dir_okay=False),
    catalog: Path = typer.Option(..., exists=True, readable=True, dir_okay=False),
    output: Path = typer.Option(..., dir_okay=False, help="Output JSON path."),
    assignments: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False),
    employee_id: Optional[str] = typer.Option(None, help="Only this employee."),
    requirement_hours: Optional[float] = typer.Option(None, help="Override annual requirement."),
    role: Optional[str] = typer.Option(None, help="Filter by role ('all' for every role)."),
    classification: Optional[str] = typer.Option(None, help="Filter by classification."),
    now: Optional[str] = typer.Option(None, help="Evaluate as of this ISO timestamp."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
) -> None:
    """Compute compliance snapshots and a roster summary."""
    container = _bootstrap(config, log_level, now)
    roster = _loader.load_many(employees, Employee)
    records = _loader.load_many(progress, ProgressRecord)
    trainings = _loader.load_many(catalog, TrainingDefinition)
    active_assignments = _loader.load_many(assignments, Assignment) if assignments else []

    if employee_id:
        roster = [employee for employee in roster if employee.id == employee_id]
        if not roster:
            raise typer.BadParameter(f"Unknown employee: {employee_id}", param_hint="employee_id")

    container.repository.override(providers.Object(InMemoryRepository(progress=records)))
    service = container.training_service()

    try:
        snapshots = [
            service.snapshot(
                employee,
                catalog=trainings,
                assignments=active_assignments,
                requirement_hours=requirement_hours,
            )
            for employee in roster
        ]
        selected = filter_snapshots(snapshots, role=role, classification=classification)
    except (EngineError, ValueError) as exc:
        typer.echo(f"Invalid input: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    _writer.write(
        output,
        {
            "employees": [asdict(snapshot) for snapshot in selected],
            "summary": asdict(summarize(snapshots)),
            "total": len(selected),
        },
    )
    typer.echo(f"Computed compliance for {len(snapshots)} employees.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
