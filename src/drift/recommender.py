"""Cooldown-gated rollback recommendations for drifting graph versions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Sequence
from uuid import UUID, uuid4

from drift.errors import DriftCancelledError
from drift.evaluation import MetricResult, metrics_summary
from drift.repository import RollbackEventCreateInput, RollbackEventRepository

logger = logging.getLogger(__name__)

ROLLBACK_TRIGGER = "structural_drift"

REASON_COOLDOWN = "cooldown"
REASON_COOLDOWN_QUERY_FAILED = "cooldown_query_failed"
REASON_INSERT_FAILED = "insert_failed"


@dataclass(frozen=True)
class RecommendationResult:
    """Outcome of a rollback recommendation attempt."""

    written: bool
    rollback_event_id: UUID | None = None
    reason: str | None = None


def maybe_recommend_rollback(
    rollback_repo: RollbackEventRepository,
    *,
    graph_version: str,
    status: str,
    cooldown_hours: int,
    metrics: Sequence[MetricResult],
    trace_id: str,
    now: datetime,
    should_cancel: Callable[[], bool] | None = None,
) -> RecommendationResult:
    """Record a rollback recommendation unless one is still cooling down.

    Persistence failures are logged and reported through ``reason``; only
    cancellation propagates.
    """
    cutoff = now - timedelta(hours=cooldown_hours)
    _check_cancelled(should_cancel, "cooldown_check")
    try:
        recent = rollback_repo.count_recent(graph_version, ROLLBACK_TRIGGER, cutoff)
    except Exception:
        logger.exception(
            "Rollback cooldown check failed: graph_version=%s",
            graph_version,
        )
        return RecommendationResult(written=False, reason=REASON_COOLDOWN_QUERY_FAILED)
    if recent > 0:
        logger.info(
            "Rollback recommendation suppressed by cooldown: graph_version=%s recent=%s",
            graph_version,
            recent,
        )
        return RecommendationResult(written=False, reason=REASON_COOLDOWN)

    notes = {"metrics": metrics_summary(metrics), "trace_id": trace_id}
    event_id = uuid4()
    _check_cancelled(should_cancel, "rollback_insert")
    try:
        rollback_repo.create(
            RollbackEventCreateInput(
                graph_version_from=graph_version,
                trigger=ROLLBACK_TRIGGER,
                status=status,
                notes=notes,
                event_id=event_id,
                created_at=now,
            )
        )
    except Exception:
        logger.exception(
            "Rollback recommendation insert failed: graph_version=%s",
            graph_version,
        )
        return RecommendationResult(written=False, reason=REASON_INSERT_FAILED)

    logger.info(
        "Rollback recommended: graph_version=%s event_id=%s status=%s",
        graph_version,
        event_id,
        status,
    )
    return RecommendationResult(written=True, rollback_event_id=event_id)


def _check_cancelled(should_cancel: Callable[[], bool] | None, stage: str) -> None:
    if should_cancel is not None and should_cancel():
        raise DriftCancelledError(stage)
