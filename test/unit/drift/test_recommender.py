"""Unit tests for cooldown-gated rollback recommendations."""

from __future__ import annotations

from datetime import timedelta

import pytest

from drift.errors import DriftCancelledError
from drift.evaluation import MetricResult
from drift.recommender import (
    REASON_COOLDOWN,
    REASON_COOLDOWN_QUERY_FAILED,
    REASON_INSERT_FAILED,
    ROLLBACK_TRIGGER,
    maybe_recommend_rollback,
)
from drift.repository import RollbackEventRepository
from test.helpers.drift_seed import NOW

_METRICS = [MetricResult("remerge_rate", 0.3, 0.1, 0.2, "critical", 10)]


class _FailingRepo:
    """Rollback repository stub that fails on the configured operation."""

    def __init__(self, *, fail_count: bool = False, fail_create: bool = False) -> None:
        self.fail_count = fail_count
        self.fail_create = fail_create
        self.created = []

    def count_recent(self, graph_version, trigger, cutoff) -> int:
        if self.fail_count:
            raise RuntimeError("count failed")
        return 0

    def create(self, payload):
        if self.fail_create:
            raise RuntimeError("insert failed")
        self.created.append(payload)
        return payload


def _recommend(repo, **overrides):
    kwargs = {
        "graph_version": "gv-1",
        "status": "recommended",
        "cooldown_hours": 24,
        "metrics": _METRICS,
        "trace_id": "t-1",
        "now": NOW,
    }
    kwargs.update(overrides)
    return maybe_recommend_rollback(repo, **kwargs)


def test_writes_event_with_notes(sqlite_session_factory) -> None:
    """A recommendation stores the metric summary and trace id."""
    repo = RollbackEventRepository(sqlite_session_factory)

    result = _recommend(repo)

    assert result.written is True
    events = repo.list_for_graph_version("gv-1")
    assert len(events) == 1
    assert events[0].id == result.rollback_event_id
    assert events[0].trigger == ROLLBACK_TRIGGER
    assert events[0].status == "recommended"
    assert events[0].notes["trace_id"] == "t-1"
    assert events[0].notes["metrics"][0]["name"] == "remerge_rate"


def test_cooldown_suppresses_second_event(sqlite_session_factory) -> None:
    """A second recommendation inside the cooldown is skipped."""
    repo = RollbackEventRepository(sqlite_session_factory)

    first = _recommend(repo)
    second = _recommend(repo, now=NOW + timedelta(hours=1))
    third = _recommend(repo, now=NOW + timedelta(hours=25))

    assert first.written is True
    assert second.written is False
    assert second.reason == REASON_COOLDOWN
    assert third.written is True
    assert len(repo.list_for_graph_version("gv-1")) == 2


def test_insert_failure_is_swallowed(caplog) -> None:
    """An insert failure is logged and reported, never raised."""
    result = _recommend(_FailingRepo(fail_create=True))

    assert result.written is False
    assert result.rollback_event_id is None
    assert result.reason == REASON_INSERT_FAILED
    assert "insert failed" in caplog.text


def test_cooldown_query_failure_is_swallowed() -> None:
    """A failing cooldown check does not write and does not raise."""
    repo = _FailingRepo(fail_count=True)

    result = _recommend(repo)

    assert result.written is False
    assert result.reason == REASON_COOLDOWN_QUERY_FAILED
    assert repo.created == []


def test_cancellation_propagates() -> None:
    """Cancellation before the cooldown check aborts."""
    with pytest.raises(DriftCancelledError):
        _recommend(_FailingRepo(), should_cancel=lambda: True)
