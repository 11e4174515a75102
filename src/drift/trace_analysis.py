"""Candidate-margin and near-threshold statistics over decision traces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from drift.evaluation import (
    DIRECTION_MAX,
    DIRECTION_MIN,
    METRIC_NEAR_THRESHOLD_RATE,
    METRIC_SCORE_MARGIN_MEAN,
    METRIC_SCORE_MARGIN_P10,
    MetricResult,
    build_rate_metric,
)
from drift.json_probe import extract_candidate_scores, extract_chosen_score, extract_threshold
from drift.run_config import DEFAULT_NEAR_THRESHOLD_MARGIN, ComputeInput
from drift.stats import is_nan_or_inf, mean, quantile

MARGIN_QUANTILE = 0.1


@dataclass(frozen=True)
class MarginAnalysis:
    """Raw statistics derived from one batch of decision traces."""

    margins: list[float] = field(default_factory=list)
    margin_samples: int = 0
    near_threshold_rate: float = 0.0
    accept_count: int = 0
    near_count: int = 0


def analyze_candidate_margins(
    traces: Iterable[Any],
    near_threshold_margin: float,
) -> MarginAnalysis:
    """Compute top-two score margins and the near-threshold acceptance rate.

    Each trace needs ``candidates``, ``chosen`` and ``thresholds`` attributes
    holding JSON. A trace with fewer than two candidate scores contributes no
    margin but can still count towards acceptance through its top or chosen
    score.
    """
    if near_threshold_margin <= 0:
        near_threshold_margin = DEFAULT_NEAR_THRESHOLD_MARGIN
    margins: list[float] = []
    accept_count = 0
    near_count = 0

    for trace in traces:
        if trace is None:
            continue
        scores = sorted(extract_candidate_scores(trace.candidates), reverse=True)
        if len(scores) >= 2:
            margin = scores[0] - scores[1]
            if not is_nan_or_inf(margin):
                margins.append(margin)

        top_score = scores[0] if scores else extract_chosen_score(trace.chosen)
        threshold, found = extract_threshold(trace.thresholds)
        if not found or threshold <= 0 or top_score <= 0:
            continue
        if top_score >= threshold:
            accept_count += 1
            if (top_score - threshold) <= near_threshold_margin:
                near_count += 1

    rate = near_count / accept_count if accept_count > 0 else 0.0
    return MarginAnalysis(
        margins=margins,
        margin_samples=len(margins),
        near_threshold_rate=rate,
        accept_count=accept_count,
        near_count=near_count,
    )


def build_trace_metrics(analysis: MarginAnalysis, compute_input: ComputeInput) -> list[MetricResult]:
    """Classify the margin and near-threshold statistics into three metrics."""
    metrics: list[MetricResult] = []
    if analysis.margin_samples > 0 and analysis.margins:
        ordered = sorted(analysis.margins)
        margin_mean = mean(ordered)
        margin_p10 = quantile(ordered, MARGIN_QUANTILE)
        metrics.append(
            build_rate_metric(
                METRIC_SCORE_MARGIN_MEAN,
                margin_mean,
                compute_input.score_margin_mean_warn_min,
                compute_input.score_margin_mean_crit_min,
                analysis.margin_samples,
                DIRECTION_MIN,
            ).with_meta({"p10": margin_p10})
        )
        metrics.append(
            build_rate_metric(
                METRIC_SCORE_MARGIN_P10,
                margin_p10,
                compute_input.score_margin_p10_warn_min,
                compute_input.score_margin_p10_crit_min,
                analysis.margin_samples,
                DIRECTION_MIN,
            ).with_meta({"mean": margin_mean})
        )
    else:
        metrics.append(
            build_rate_metric(
                METRIC_SCORE_MARGIN_MEAN,
                0.0,
                compute_input.score_margin_mean_warn_min,
                compute_input.score_margin_mean_crit_min,
                0,
                DIRECTION_MIN,
            )
        )
        metrics.append(
            build_rate_metric(
                METRIC_SCORE_MARGIN_P10,
                0.0,
                compute_input.score_margin_p10_warn_min,
                compute_input.score_margin_p10_crit_min,
                0,
                DIRECTION_MIN,
            )
        )
    metrics.append(
        build_rate_metric(
            METRIC_NEAR_THRESHOLD_RATE,
            analysis.near_threshold_rate,
            compute_input.near_threshold_rate_warn_max,
            compute_input.near_threshold_rate_crit_max,
            analysis.accept_count,
            DIRECTION_MAX,
        ).with_meta(
            {
                "accept_count": analysis.accept_count,
                "near_count": analysis.near_count,
            }
        )
    )
    return metrics
