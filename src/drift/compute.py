"""Structural drift computation: sample, classify, persist, alert, recommend."""

from __future__ import annotations

import logging
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Sequence
from uuid import UUID

from opentelemetry import trace
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from drift.alerts import report_structural_drift
from drift.errors import (
    DriftCancelledError,
    DriftConfigurationError,
    DriftDependencyError,
    DriftError,
    DriftPersistenceError,
    DriftSamplingError,
    GraphProbeError,
)
from drift.evaluation import (
    DIRECTION_MAX,
    METRIC_EDGE_CONFIDENCE_SHIFT,
    METRIC_REMERGE_RATE,
    MetricResult,
    build_rate_metric,
    collect_alerts,
    to_alert_metrics,
)
from drift.graph_probes import (
    ProbeResult,
    compute_edge_confidence_shift,
    compute_remerge_rate,
    latest_graph_version,
    list_structural_traces,
)
from drift.recommender import maybe_recommend_rollback
from drift.repository import (
    RollbackEventRepository,
    StructuralDriftMetricCreateInput,
    StructuralDriftMetricRepository,
)
from drift.run_config import ComputeInput
from drift.trace_analysis import analyze_candidate_margins, build_trace_metrics
from observability import get_drift_metrics
from time_utils import format_rfc3339, to_utc, utc_now

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

AlertReporter = Callable[[logging.Logger, Sequence[Mapping[str, Any]], Mapping[str, Any]], Any]


@dataclass
class ComputeDeps:
    """Collaborators for a drift computation run."""

    session_factory: Callable[[], Session] | None
    metrics_repo: StructuralDriftMetricRepository | None
    rollback_repo: RollbackEventRepository | None = None
    alert_reporter: AlertReporter | None = report_structural_drift
    logger: logging.Logger = field(default_factory=lambda: logger)
    now_provider: Callable[[], datetime] = utc_now
    should_cancel: Callable[[], bool] | None = None


@dataclass(frozen=True)
class ComputeOutput:
    """Result of a successful drift computation run."""

    graph_version: str
    window_start: datetime
    window_end: datetime
    metrics_written: int = 0
    alerts: list[str] = field(default_factory=list)
    recommendation_written: bool = False
    rollback_event_id: UUID | None = None
    trace_id: str = ""
    metrics: list[MetricResult] = field(default_factory=list)

    def to_summary(self) -> dict[str, Any]:
        """Return the job result mapping for this run."""
        summary: dict[str, Any] = {
            "graph_version": self.graph_version,
            "window_start": format_rfc3339(self.window_start),
            "window_end": format_rfc3339(self.window_end),
            "metrics_written": self.metrics_written,
            "alerts": list(self.alerts),
            "recommendation_written": self.recommendation_written,
        }
        if self.rollback_event_id is not None:
            summary["rollback_event_id"] = str(self.rollback_event_id)
        if self.trace_id:
            summary["trace_id"] = self.trace_id
        return summary


def compute(deps: ComputeDeps, compute_input: ComputeInput) -> ComputeOutput:
    """Run one structural drift computation.

    Raises:
        DriftDependencyError: When the session factory or metric repository is missing.
        DriftConfigurationError: When no graph version can be resolved.
        DriftSamplingError: When decision traces cannot be listed.
        DriftPersistenceError: When the metric batch cannot be written.
        DriftCancelledError: When ``deps.should_cancel`` fires between stages.
    """
    run_counter = get_drift_metrics().runs
    with tracer.start_as_current_span("structural_drift.compute") as span:
        try:
            output = _compute(deps, compute_input, span)
        except DriftCancelledError as exc:
            run_counter.add(1, {"outcome": "cancelled"})
            span.set_attribute("drift.outcome", "cancelled")
            span.set_attribute("drift.cancelled_stage", exc.stage)
            raise
        except DriftError as exc:
            run_counter.add(1, {"outcome": "failed"})
            span.set_attribute("drift.outcome", "failed")
            span.set_attribute("drift.error", str(exc))
            raise
        run_counter.add(1, {"outcome": "succeeded"})
        span.set_attribute("drift.outcome", "succeeded")
        return output


def _compute(deps: ComputeDeps, compute_input: ComputeInput, span) -> ComputeOutput:
    if deps.session_factory is None or deps.metrics_repo is None:
        raise DriftDependencyError("drift: missing deps")
    run_logger = deps.logger or logger
    compute_input = compute_input.with_defaults()
    trace_id = compute_input.trace_id.strip()

    graph_version = compute_input.graph_version.strip()
    if not graph_version and compute_input.allow_fallback_graph_version:
        _check_cancelled(deps, "graph_version_lookup")
        graph_version = _resolve_latest_graph_version(deps, run_logger)
    if not graph_version:
        raise DriftConfigurationError("drift: missing graph_version")

    window_end = to_utc(deps.now_provider())
    window_start = window_end - timedelta(hours=compute_input.window_hours)
    span.set_attribute("drift.graph_version", graph_version)
    run_logger.info(
        "Structural drift run started: graph_version=%s window_start=%s window_end=%s "
        "max_samples=%s trace_id=%s",
        graph_version,
        format_rfc3339(window_start),
        format_rfc3339(window_end),
        compute_input.max_samples,
        trace_id,
    )

    _check_cancelled(deps, "trace_scan")
    try:
        with closing(deps.session_factory()) as session:
            traces = list_structural_traces(
                session,
                graph_version=graph_version,
                start=window_start,
                end=window_end,
                decision_types=compute_input.decision_types,
                max_samples=compute_input.max_samples,
            )
            analysis = analyze_candidate_margins(traces, compute_input.near_threshold_margin)
    except SQLAlchemyError as exc:
        raise DriftSamplingError(f"drift: listing decision traces failed: {exc}") from exc
    if analysis.margin_samples < compute_input.min_samples:
        run_logger.debug(
            "Structural drift margin samples below min_samples: samples=%s min_samples=%s",
            analysis.margin_samples,
            compute_input.min_samples,
        )

    metrics = build_trace_metrics(analysis, compute_input)

    _check_cancelled(deps, "remerge_probe")
    remerge = _run_probe(deps, run_logger, compute_remerge_rate, window_start, window_end)
    metrics.append(
        build_rate_metric(
            METRIC_REMERGE_RATE,
            remerge.value,
            compute_input.remerge_rate_warn_max,
            compute_input.remerge_rate_crit_max,
            remerge.samples,
            DIRECTION_MAX,
        ).with_meta(remerge.meta)
    )

    _check_cancelled(deps, "edge_probe")
    edge_shift = _run_probe(
        deps, run_logger, compute_edge_confidence_shift, window_start, window_end
    )
    metrics.append(
        build_rate_metric(
            METRIC_EDGE_CONFIDENCE_SHIFT,
            edge_shift.value,
            compute_input.edge_conf_shift_warn_max,
            compute_input.edge_conf_shift_crit_max,
            edge_shift.samples,
            DIRECTION_MAX,
        ).with_meta(edge_shift.meta)
    )

    metrics = [_annotate(metric, trace_id) for metric in metrics]
    rows = [
        StructuralDriftMetricCreateInput(
            graph_version=graph_version,
            metric_name=metric.name,
            window_start=window_start,
            window_end=window_end,
            value=metric.value,
            threshold=metric.warn,
            status=metric.status,
            metadata=metric.meta,
        )
        for metric in metrics
    ]
    _check_cancelled(deps, "metric_insert")
    try:
        metrics_written = deps.metrics_repo.create_many(rows)
    except Exception as exc:
        raise DriftPersistenceError(f"drift: writing metrics failed: {exc}") from exc

    instruments = get_drift_metrics()
    for metric in metrics:
        instruments.metric_value.record(
            metric.value,
            {"metric": metric.name, "status": metric.status},
        )

    alerts = collect_alerts(metrics, compute_input.alert_on_warn)
    if alerts and deps.alert_reporter is not None:
        context = {
            "graph_version": graph_version,
            "window_start": format_rfc3339(window_start),
            "window_end": format_rfc3339(window_end),
            "trace_id": trace_id,
        }
        try:
            deps.alert_reporter(run_logger, to_alert_metrics(metrics), context)
        except Exception:
            run_logger.exception("Structural drift alert sink failed: graph_version=%s", graph_version)

    recommendation_written = False
    rollback_event_id = None
    if alerts and compute_input.recommendation_status.strip() and deps.rollback_repo is not None:
        result = maybe_recommend_rollback(
            deps.rollback_repo,
            graph_version=graph_version,
            status=compute_input.recommendation_status.strip(),
            cooldown_hours=compute_input.recommendation_cooldown_hours,
            metrics=metrics,
            trace_id=trace_id,
            now=window_end,
            should_cancel=deps.should_cancel,
        )
        recommendation_written = result.written
        rollback_event_id = result.rollback_event_id
        if result.written:
            instruments.recommendations.add(1, {"graph_version": graph_version})

    run_logger.info(
        "Structural drift run finished: graph_version=%s metrics_written=%s alerts=%s "
        "recommendation_written=%s",
        graph_version,
        metrics_written,
        ",".join(alerts) or "-",
        recommendation_written,
    )
    return ComputeOutput(
        graph_version=graph_version,
        window_start=window_start,
        window_end=window_end,
        metrics_written=metrics_written,
        alerts=alerts,
        recommendation_written=recommendation_written,
        rollback_event_id=rollback_event_id,
        trace_id=trace_id,
        metrics=metrics,
    )


def _resolve_latest_graph_version(deps: ComputeDeps, run_logger: logging.Logger) -> str:
    try:
        with closing(deps.session_factory()) as session:
            return latest_graph_version(session) or ""
    except SQLAlchemyError:
        run_logger.warning("Latest graph version lookup failed.", exc_info=True)
        return ""


def _run_probe(
    deps: ComputeDeps,
    run_logger: logging.Logger,
    probe: Callable[[Session, datetime, datetime], ProbeResult],
    start: datetime,
    end: datetime,
) -> ProbeResult:
    """Run one graph probe in its own session; a failure yields an empty result."""
    try:
        with closing(deps.session_factory()) as session:
            return probe(session, start, end)
    except GraphProbeError as exc:
        run_logger.warning(
            "Structural drift probe failed: probe=%s samples=%s error=%s",
            exc.probe,
            exc.samples,
            exc.cause,
        )
        return ProbeResult(value=0.0, samples=0, meta={"probe_error": str(exc.cause)})


def _annotate(metric: MetricResult, trace_id: str) -> MetricResult:
    extra: dict[str, Any] = {
        "samples": metric.samples,
        "trace_id": trace_id,
        "warn_threshold": metric.warn,
    }
    if metric.crit > 0:
        extra["crit_threshold"] = metric.crit
    return metric.with_meta(extra)


def _check_cancelled(deps: ComputeDeps, stage: str) -> None:
    if deps.should_cancel is not None and deps.should_cancel():
        raise DriftCancelledError(stage)
