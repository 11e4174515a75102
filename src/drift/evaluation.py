"""Metric classification against warn/critical thresholds."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping

STATUS_OK = "ok"
STATUS_WARN = "warn"
STATUS_CRITICAL = "critical"
STATUS_INSUFFICIENT = "insufficient"

DIRECTION_MIN = "min"
DIRECTION_MAX = "max"

METRIC_SCORE_MARGIN_MEAN = "candidate_score_margin_mean"
METRIC_SCORE_MARGIN_P10 = "candidate_score_margin_p10"
METRIC_NEAR_THRESHOLD_RATE = "merge_near_threshold_rate"
METRIC_REMERGE_RATE = "remerge_rate"
METRIC_EDGE_CONFIDENCE_SHIFT = "edge_confidence_shift"

METRIC_NAMES = (
    METRIC_SCORE_MARGIN_MEAN,
    METRIC_SCORE_MARGIN_P10,
    METRIC_NEAR_THRESHOLD_RATE,
    METRIC_REMERGE_RATE,
    METRIC_EDGE_CONFIDENCE_SHIFT,
)


@dataclass(frozen=True)
class MetricResult:
    """One classified drift indicator for a run."""

    name: str
    value: float
    warn: float
    crit: float
    status: str
    samples: int
    direction: str = DIRECTION_MAX
    meta: dict[str, Any] = field(default_factory=dict)

    def with_meta(self, extra: Mapping[str, Any] | None) -> "MetricResult":
        """Return a copy with ``extra`` merged into the metadata."""
        if not extra:
            return self
        merged = dict(self.meta)
        merged.update(extra)
        return replace(self, meta=merged)


def build_rate_metric(
    name: str,
    value: float,
    warn: float,
    crit: float,
    samples: int,
    direction: str,
) -> MetricResult:
    """Classify ``value`` and package it as a metric result."""
    status = STATUS_INSUFFICIENT
    if samples > 0:
        status = evaluate_status(value, warn, crit, direction)
    return MetricResult(
        name=name,
        value=value,
        warn=warn,
        crit=crit,
        status=status,
        samples=samples,
        direction=_normalize_direction(direction),
    )


def evaluate_status(value: float, warn: float, crit: float, direction: str) -> str:
    """Return ok, warn or critical for ``value`` under the given direction.

    ``min`` means lower values are worse; anything else is treated as ``max``.
    """
    if warn <= 0 and crit <= 0:
        return STATUS_OK
    if _normalize_direction(direction) == DIRECTION_MIN:
        if crit > 0 and value <= crit:
            return STATUS_CRITICAL
        if warn > 0 and value <= warn:
            return STATUS_WARN
        return STATUS_OK
    if crit > 0 and value >= crit:
        return STATUS_CRITICAL
    if warn > 0 and value >= warn:
        return STATUS_WARN
    return STATUS_OK


def derive_crit_min(warn: float, crit: float) -> float:
    """Default a lower-is-worse critical threshold to half the warn threshold."""
    if crit > 0:
        return crit
    if warn <= 0:
        return 0.0
    return warn * 0.5


def derive_crit_max(warn: float, crit: float) -> float:
    """Default a higher-is-worse critical threshold to twice the warn threshold."""
    if crit > 0:
        return crit
    if warn <= 0:
        return 0.0
    return warn * 2


def collect_alerts(metrics: Iterable[MetricResult], alert_on_warn: bool) -> list[str]:
    """Return the names of metrics that should raise an alert."""
    alerts: list[str] = []
    for metric in metrics:
        if metric.status == STATUS_CRITICAL:
            alerts.append(metric.name)
        elif metric.status == STATUS_WARN and alert_on_warn:
            alerts.append(metric.name)
    return alerts


def metrics_summary(metrics: Iterable[MetricResult]) -> list[dict[str, Any]]:
    """Return the compact per-metric summary stored on rollback notes."""
    return [
        {
            "name": metric.name,
            "status": metric.status,
            "value": metric.value,
            "warn": metric.warn,
            "crit": metric.crit,
            "samples": metric.samples,
        }
        for metric in metrics
    ]


def to_alert_metrics(metrics: Iterable[MetricResult]) -> list[dict[str, Any]]:
    """Return metric snapshots in the shape the alert sink expects."""
    return [
        {
            "name": metric.name,
            "status": metric.status,
            "value": metric.value,
            "threshold": metric.warn,
            "meta": dict(metric.meta),
        }
        for metric in metrics
    ]


def _normalize_direction(direction: str) -> str:
    normalized = (direction or "").strip().lower()
    if normalized == DIRECTION_MIN:
        return DIRECTION_MIN
    return DIRECTION_MAX
