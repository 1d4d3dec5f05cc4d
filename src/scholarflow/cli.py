"""Typer CLI entrypoint for interview scheduling, endorsement and committee decisions."""

from __future__ import annotations

import json
from datetime import date, time
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import ValidationError

from .config import ConfigManager
from .container import create_container
from .core import ScholarFlowError, pack_consecutive
from .core.intervals import format_display, format_hhmm
from .logging import configure_logging
from .schemas import InterviewType
from .schemas.config import load_config
from .store import AuditLogger, StateLoader, StateWriter

app = typer.Typer(help="Scholarship interview scheduling, endorsement and decision CLI.")


def _load_settings(config: Optional[Path]) -> dict[str, Any]:
    if config is None:
        return {}
    try:
        settings = ConfigManager.load_path(config)
        load_config(settings)
    except (ValueError, ValidationError) as exc:
        raise typer.BadParameter(str(exc), param_name="config") from exc
    return settings


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def _parse_time(value: str) -> time:
    try:
        return time.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid time {value!r}, expected HH:MM") from exc


def _write_report(payload: dict[str, Any], report: Optional[Path]) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
    if report is None:
        typer.echo(text)
        return
    report.parent.mkdir(parents=True, exist_ok=True)
    report.write_text(text, encoding="utf-8")


def _fail(exc: ScholarFlowError) -> None:
    typer.echo(json.dumps(exc.to_dict(), ensure_ascii=False, default=str), err=True)
    raise typer.Exit(code=1)


@app.command()
def pack(
    start: str = typer.Option(..., help="First start time (HH:MM)."),
    count: int = typer.Option(..., min=1, help="Number of consecutive interviews."),
    duration: Optional[int] = typer.Option(None, help="Interview length in minutes."),
    gap: Optional[int] = typer.Option(None, help="Break between interviews in minutes."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
) -> None:
    """Preview the consecutive interview times a bulk allocation would use."""
    scheduler_config = load_config(_load_settings(config) or None).scheduler
    try:
        ranges = pack_consecutive(
            _parse_time(start),
            scheduler_config.default_duration_minutes if duration is None else duration,
            scheduler_config.default_gap_minutes if gap is None else gap,
            count,
        )
    except ScholarFlowError as exc:
        _fail(exc)
        return
    for index, planned in enumerate(ranges, start=1):
        typer.echo(
            f"{index}. {format_hhmm(planned.start)}-{format_hhmm(planned.end)}"
            f" ({format_display(planned.start)} - {format_display(planned.end)})"
        )


@app.command()
def available(
    state: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="State JSON path."),
    interviewer: str = typer.Option(..., help="Interviewer id."),
    on: str = typer.Option(..., "--date", help="Interview date (YYYY-MM-DD)."),
    duration: Optional[int] = typer.Option(None, help="Interview length in minutes."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("WARNING", help="Log level for structured logging."),
) -> None:
    """List free start times for an interviewer on one date."""
    settings = _load_settings(config)
    configure_logging(log_level)
    repository = StateLoader().load(state)
    service = create_container(settings=settings, repository=repository).service()
    try:
        starts = service.available_interview_starts(interviewer, _parse_date(on), duration)
    except ScholarFlowError as exc:
        _fail(exc)
        return
    if not starts:
        typer.echo("No available start times.")
        return
    for start in starts:
        typer.echo(start.strftime("%H:%M"))


@app.command("schedule-bulk")
def schedule_bulk(
    state: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="State JSON path."),
    interviewer: str = typer.Option(..., help="Interviewer id."),
    on: str = typer.Option(..., "--date", help="Interview date (YYYY-MM-DD)."),
    start: str = typer.Option(..., help="First start time (HH:MM)."),
    application: List[str] = typer.Option(..., "--application", "-a", help="Application id, repeatable."),
    duration: Optional[int] = typer.Option(None, help="Interview length in minutes."),
    gap: Optional[int] = typer.Option(None, help="Break between interviews in minutes."),
    interview_type: InterviewType = typer.Option(InterviewType.ONLINE, help="Interview type."),
    meeting_link: Optional[str] = typer.Option(None, help="Meeting link for online interviews."),
    scheduled_by: Optional[str] = typer.Option(None, help="Acting staff member."),
    report: Optional[Path] = typer.Option(None, dir_okay=False, help="Write the JSON report here instead of stdout."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("INFO", help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
) -> None:
    """Book consecutive interviews for several applications and save the state."""
    settings = _load_settings(config)
    configure_logging(log_level)
    repository = StateLoader().load(state)
    service = create_container(settings=settings, repository=repository).service()
    service.with_audit_logger(AuditLogger(audit_log) if audit_log else None)

    try:
        result = service.schedule_bulk_interviews(
            application,
            interviewer,
            _parse_date(on),
            _parse_time(start),
            duration,
            gap,
            meeting_link=meeting_link,
            interview_type=interview_type,
            scheduled_by=scheduled_by,
        )
    except ScholarFlowError as exc:
        _fail(exc)
        return

    StateWriter().write(state, repository)
    _write_report(result.to_dict(), report)
    if report is not None:
        typer.echo(
            f"Scheduled {len(result.scheduled)} interviews ({len(result.failed)} failed). "
            f"Report saved to {report}."
        )


@app.command()
def endorse(
    state: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="State JSON path."),
    application: List[str] = typer.Option(..., "--application", "-a", help="Application id, repeatable."),
    filter_mode: str = typer.Option("all", "--filter", help="ready | consideration | all."),
    notes: Optional[str] = typer.Option(None, help="Endorsement notes."),
    endorsed_by: Optional[str] = typer.Option(None, help="Acting staff member."),
    report: Optional[Path] = typer.Option(None, dir_okay=False, help="Write the JSON report here instead of stdout."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("INFO", help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
) -> None:
    """Endorse interviewed applications to the selection committee."""
    settings = _load_settings(config)
    configure_logging(log_level)
    repository = StateLoader().load(state)
    service = create_container(settings=settings, repository=repository).service()
    service.with_audit_logger(AuditLogger(audit_log) if audit_log else None)

    try:
        result = service.bulk_endorse(application, filter_mode, notes, endorsed_by=endorsed_by)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_name="filter") from exc

    StateWriter().write(state, repository)
    _write_report(result.to_dict(), report)
    if report is not None:
        typer.echo(
            f"Endorsed {result.endorsed_count} of {result.total_processed} processed "
            f"({result.skipped_count} skipped). Report saved to {report}."
        )


@app.command("bulk-approve")
def bulk_approve(
    state: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="State JSON path."),
    application: List[str] = typer.Option(..., "--application", "-a", help="Application id, repeatable."),
    notes: Optional[str] = typer.Option(None, help="Decision notes."),
    approved_by: Optional[str] = typer.Option(None, help="Acting committee member."),
    report: Optional[Path] = typer.Option(None, dir_okay=False, help="Write the JSON report here instead of stdout."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("INFO", help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
) -> None:
    """Approve endorsed applications at their requested amounts."""
    settings = _load_settings(config)
    configure_logging(log_level)
    repository = StateLoader().load(state)
    service = create_container(settings=settings, repository=repository).service()
    service.with_audit_logger(AuditLogger(audit_log) if audit_log else None)

    result = service.bulk_approve(application, notes, approved_by=approved_by)

    StateWriter().write(state, repository)
    _write_report(result.to_dict(), report)
    if report is not None:
        typer.echo(
            f"Approved {result.decided_count} of {result.total_processed} processed "
            f"({result.skipped_count} skipped). Report saved to {report}."
        )


@app.command("bulk-reject")
def bulk_reject(
    state: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="State JSON path."),
    application: List[str] = typer.Option(..., "--application", "-a", help="Application id, repeatable."),
    reason: str = typer.Option(..., help="Rejection reason recorded on every application."),
    rejected_by: Optional[str] = typer.Option(None, help="Acting committee member."),
    report: Optional[Path] = typer.Option(None, dir_okay=False, help="Write the JSON report here instead of stdout."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: str = typer.Option("INFO", help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Audit log output (JSONL)."),
) -> None:
    """Reject endorsed applications with one shared reason."""
    settings = _load_settings(config)
    configure_logging(log_level)
    repository = StateLoader().load(state)
    service = create_container(settings=settings, repository=repository).service()
    service.with_audit_logger(AuditLogger(audit_log) if audit_log else None)

    try:
        result = service.bulk_reject(application, reason, rejected_by=rejected_by)
    except ScholarFlowError as exc:
        _fail(exc)
        return

    StateWriter().write(state, repository)
    _write_report(result.to_dict(), report)
    if report is not None:
        typer.echo(
            f"Rejected {result.decided_count} of {result.total_processed} processed "
            f"({result.skipped_count} skipped). Report saved to {report}."
        )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
