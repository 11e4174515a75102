"""Unit tests for the structural drift alert sink."""

from __future__ import annotations

import logging

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

import observability
from drift.alerts import report_structural_drift
from observability import DriftMetrics


@pytest.fixture()
def metric_reader(monkeypatch) -> InMemoryMetricReader:
    """Bind drift instruments to an in-memory reader for the test."""
    reader = InMemoryMetricReader()
    provider = MeterProvider(metric_readers=[reader])
    monkeypatch.setattr(observability, "_metrics", DriftMetrics(provider.get_meter("test")))
    return reader


def _counter_total(reader: InMemoryMetricReader, name: str) -> float:
    data = reader.get_metrics_data()
    total = 0.0
    if data is None:
        return total
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name == name:
                    total += sum(point.value for point in metric.data.data_points)
    return total


def test_reports_only_warn_and_critical(metric_reader, caplog) -> None:
    """Only alerting snapshots are logged and counted."""
    snapshots = [
        {"name": "remerge_rate", "status": "critical", "value": 0.4, "threshold": 0.1},
        {"name": "edge_confidence_shift", "status": "warn", "value": 0.12, "threshold": 0.1},
        {"name": "candidate_score_margin_mean", "status": "ok", "value": 0.3, "threshold": 0.15},
        {"name": "candidate_score_margin_p10", "status": "insufficient", "value": 0.0},
    ]
    context = {"graph_version": "gv-1", "trace_id": "t-1"}

    with caplog.at_level(logging.WARNING):
        reported = report_structural_drift(logging.getLogger("drift.test"), snapshots, context)

    assert reported == 2
    assert "Structural drift critical: metric=remerge_rate" in caplog.text
    assert "Structural drift warn: metric=edge_confidence_shift" in caplog.text
    assert "candidate_score_margin_mean" not in caplog.text
    assert _counter_total(metric_reader, "structural_drift.alerts") == 2


def test_empty_snapshots_report_nothing(metric_reader) -> None:
    """No snapshots means no alerts."""
    assert report_structural_drift(logging.getLogger("drift.test"), [], None) == 0
    assert _counter_total(metric_reader, "structural_drift.alerts") == 0
