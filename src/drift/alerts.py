"""Structural drift alert sink: log, count and annotate the active span."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from opentelemetry import trace

from drift.evaluation import STATUS_CRITICAL, STATUS_WARN
from observability import get_drift_metrics


def report_structural_drift(
    logger: logging.Logger,
    alert_metrics: Sequence[Mapping[str, Any]],
    context: Mapping[str, Any] | None = None,
) -> int:
    """Report drift metrics in warn or critical status.

    ``alert_metrics`` holds every metric snapshot for the run; only warn and
    critical entries are logged and counted. Returns the number reported.
    """
    context = dict(context or {})
    graph_version = str(context.get("graph_version", ""))
    drift_metrics = get_drift_metrics()
    span = trace.get_current_span()
    reported = 0
    for metric in alert_metrics:
        status = str(metric.get("status", ""))
        if status not in (STATUS_WARN, STATUS_CRITICAL):
            continue
        reported += 1
        name = str(metric.get("name", ""))
        level = logging.ERROR if status == STATUS_CRITICAL else logging.WARNING
        logger.log(
            level,
            "Structural drift %s: metric=%s value=%s threshold=%s graph_version=%s "
            "window_start=%s window_end=%s trace_id=%s",
            status,
            name,
            metric.get("value"),
            metric.get("threshold"),
            graph_version,
            context.get("window_start", ""),
            context.get("window_end", ""),
            context.get("trace_id", ""),
        )
        drift_metrics.alerts.add(
            1,
            {"metric": name, "status": status, "graph_version": graph_version},
        )
        span.add_event(
            "structural_drift.alert",
            attributes={
                "drift.metric": name,
                "drift.status": status,
                "drift.value": float(metric.get("value") or 0.0),
                "drift.graph_version": graph_version,
            },
        )
    return reported


__all__ = ["report_structural_drift"]
