"""Unit tests for the drift monitor Typer CLI."""

from __future__ import annotations

import json
from typing import Any

import pytest
from typer.testing import CliRunner

import cli as cli_module


@pytest.fixture()
def runner(monkeypatch: Any) -> CliRunner:
    """Return a CLI runner with logging setup and database access stubbed."""
    monkeypatch.setattr(
        cli_module, "configure_logging", lambda level, otel_level, otlp_endpoint=None: None
    )
    monkeypatch.setattr(cli_module, "get_session_factory", lambda: None)
    return CliRunner()


def _stub_runner(monkeypatch: Any, transcript: dict[str, Any]) -> list[tuple]:
    calls: list[tuple] = []

    def fake_run(payload, *, trace_id="", session_factory=None):
        calls.append((payload, trace_id))
        return transcript

    monkeypatch.setattr(cli_module, "run_structural_drift", fake_run)
    return calls


def test_run_prints_summary_json(runner: CliRunner, monkeypatch: Any) -> None:
    """A successful run prints the job summary and exits 0."""
    calls = _stub_runner(
        monkeypatch,
        {"status": "succeeded", "phase": "done", "result": {"metrics_written": 5}, "error": None},
    )

    result = runner.invoke(
        cli_module.app,
        [
            "run",
            "--graph-version",
            "gv-3",
            "--window-hours",
            "12",
            "--payload",
            '{"alert_on_warn": "no"}',
            "--trace-id",
            "cli-trace",
            "--json",
        ],
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"metrics_written": 5}
    assert calls == [
        ({"alert_on_warn": "no", "graph_version": "gv-3", "window_hours": 12}, "cli-trace")
    ]


def test_run_job_failure_exits_1(runner: CliRunner, monkeypatch: Any) -> None:
    """A failed job maps to exit code 1."""
    _stub_runner(
        monkeypatch,
        {"status": "failed", "phase": "compute", "result": None, "error": "no graph"},
    )

    result = runner.invoke(cli_module.app, ["run"])

    assert result.exit_code == 1
    assert "no graph" in result.output


@pytest.mark.parametrize("payload", ["{not json", "[1, 2]"])
def test_run_invalid_payload_exits_2(runner: CliRunner, monkeypatch: Any, payload: str) -> None:
    """Malformed or non-object payloads map to exit code 2."""
    calls = _stub_runner(monkeypatch, {})

    result = runner.invoke(cli_module.app, ["run", "--payload", payload])

    assert result.exit_code == 2
    assert "invalid payload" in result.output
    assert calls == []


def test_show_config_prints_drift_settings(runner: CliRunner) -> None:
    """show-config prints the effective drift defaults."""
    result = runner.invoke(cli_module.app, ["show-config", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["window_hours"] == 168
    assert data["recommendation_status"] == "recommended"


def test_migrate_runs_migrations(runner: CliRunner, monkeypatch: Any) -> None:
    """migrate delegates to the database service."""
    calls = []
    monkeypatch.setattr(cli_module, "run_migrations_sync", lambda: calls.append(True))

    result = runner.invoke(cli_module.app, ["migrate"])

    assert result.exit_code == 0
    assert calls == [True]


def test_configured_endpoint_reaches_log_setup(monkeypatch: Any) -> None:
    """An endpoint from settings drives log export as well as tracing."""
    seen: dict[str, Any] = {}

    def fake_configure_logging(level, otel_level, otlp_endpoint=None):
        seen["logging"] = otlp_endpoint

    def fake_setup_observability(**kwargs):
        seen["setup"] = kwargs["otlp_endpoint"]

    monkeypatch.setattr(cli_module, "configure_logging", fake_configure_logging)
    monkeypatch.setattr(cli_module, "setup_observability", fake_setup_observability)
    monkeypatch.setattr(
        cli_module.settings.observability, "otlp_endpoint", "http://collector:4317"
    )

    result = CliRunner().invoke(cli_module.app, ["show-config", "--json"])

    assert result.exit_code == 0
    assert seen == {"logging": "http://collector:4317", "setup": "http://collector:4317"}
