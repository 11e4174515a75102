"""Structural drift monitor command-line interface implemented with Typer."""

from __future__ import annotations

import json
from typing import Any

import typer

from config import settings
from jobs.celery_app import run_structural_drift
from observability import configure_logging, setup_observability
from services.database import get_session_factory, run_migrations_sync

SUCCESS_EXIT_CODE = 0
JOB_FAILED_EXIT_CODE = 1
INVALID_PAYLOAD_EXIT_CODE = 2

app = typer.Typer(no_args_is_help=True, help="Structural drift monitor")


def _emit(data: Any, as_json: bool) -> None:
    """Render command output in the requested format."""
    if as_json:
        typer.echo(json.dumps(data, sort_keys=True, separators=(",", ":")))
        return
    typer.echo(json.dumps(data, indent=2, sort_keys=True))


def _build_payload(
    payload: str | None,
    graph_version: str | None,
    window_hours: int | None,
) -> dict[str, Any]:
    """Merge the raw JSON payload with explicit command options."""
    data: dict[str, Any] = {}
    if payload:
        decoded = json.loads(payload)
        if not isinstance(decoded, dict):
            raise ValueError("payload must be a JSON object")
        data.update(decoded)
    if graph_version:
        data["graph_version"] = graph_version
    if window_hours is not None:
        data["window_hours"] = window_hours
    return data


@app.callback()
def main(
    log_level: str | None = typer.Option(None, help="Override the stdout log level"),
) -> None:
    """Configure logging and telemetry before running a command."""
    configure_logging(
        log_level or settings.log_level,
        settings.log_level_otel,
        settings.observability.otlp_endpoint,
    )
    if settings.observability.otlp_endpoint:
        setup_observability(
            service_name=settings.observability.service_name,
            service_version=settings.observability.service_version,
            otlp_endpoint=settings.observability.otlp_endpoint,
        )


@app.command("run")
def run_command(
    graph_version: str | None = typer.Option(None, help="Graph version to evaluate"),
    window_hours: int | None = typer.Option(None, min=1, help="Look-back window in hours"),
    payload: str | None = typer.Option(None, help="Job payload as a JSON object"),
    trace_id: str = typer.Option("", help="Trace id stamped on metric rows"),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
) -> None:
    """Run one structural drift computation synchronously."""
    try:
        job_payload = _build_payload(payload, graph_version, window_hours)
    except ValueError as exc:
        typer.echo(f"error: invalid payload: {exc}", err=True)
        raise typer.Exit(code=INVALID_PAYLOAD_EXIT_CODE) from exc

    transcript = run_structural_drift(
        job_payload,
        trace_id=trace_id,
        session_factory=get_session_factory(),
    )
    if transcript["status"] != "succeeded":
        typer.echo(f"error: {transcript['phase']}: {transcript['error']}", err=True)
        raise typer.Exit(code=JOB_FAILED_EXIT_CODE)
    _emit(transcript["result"], as_json)
    raise typer.Exit(code=SUCCESS_EXIT_CODE)


@app.command("show-config")
def show_config_command(
    as_json: bool = typer.Option(False, "--json", help="Emit JSON output"),
) -> None:
    """Print the effective drift settings."""
    _emit(settings.drift.model_dump(mode="json"), as_json)


@app.command("migrate")
def migrate_command() -> None:
    """Apply database migrations."""
    run_migrations_sync()
    typer.echo("migrations applied")


if __name__ == "__main__":
    app()
