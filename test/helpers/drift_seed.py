"""Seeding helpers and recording stubs for structural drift tests."""

from __future__ import annotations

from contextlib import closing
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from models import Concept, ConceptEdge, GraphVersion, StructuralDecisionTrace

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def fixed_clock(value: datetime = NOW) -> Callable[[], datetime]:
    """Return a now_provider that always answers ``value``."""
    return lambda: value


def add_graph_version(
    session_factory: Callable[[], Session],
    graph_version: str,
    *,
    status: str = "active",
    updated_at: datetime = NOW,
) -> None:
    """Insert a graph version row."""
    with closing(session_factory()) as session:
        session.add(
            GraphVersion(
                graph_version=graph_version,
                status=status,
                created_at=updated_at,
                updated_at=updated_at,
            )
        )
        session.commit()


def add_trace(
    session_factory: Callable[[], Session],
    *,
    graph_version: str = "gv-1",
    candidates: Any = None,
    chosen: Any = None,
    thresholds: Any = None,
    decision_type: str = "concept_merge",
    occurred_at: datetime = NOW - timedelta(hours=1),
) -> None:
    """Insert one structural decision trace."""
    with closing(session_factory()) as session:
        session.add(
            StructuralDecisionTrace(
                occurred_at=occurred_at,
                graph_version=graph_version,
                decision_type=decision_type,
                candidates=candidates,
                chosen=chosen,
                thresholds=thresholds,
            )
        )
        session.commit()


def add_scored_trace(
    session_factory: Callable[[], Session],
    scores: Sequence[float],
    threshold: float,
    **kwargs: Any,
) -> None:
    """Insert a trace whose candidates carry ``scores`` and whose threshold is ``threshold``."""
    add_trace(
        session_factory,
        candidates=[{"id": f"c{index}", "score": score} for index, score in enumerate(scores)],
        chosen={"score": max(scores)} if scores else None,
        thresholds={"merge_threshold": threshold},
        **kwargs,
    )


def add_concept(
    session_factory: Callable[[], Session],
    *,
    created_at: datetime,
    updated_at: datetime,
    canonical_concept_id: UUID | None = None,
    scope: str = "global",
) -> UUID:
    """Insert a concept and return its id."""
    concept_id = uuid4()
    with closing(session_factory()) as session:
        session.add(
            Concept(
                id=concept_id,
                key=f"concept-{concept_id.hex[:8]}",
                scope=scope,
                canonical_concept_id=canonical_concept_id,
                created_at=created_at,
                updated_at=updated_at,
            )
        )
        session.commit()
    return concept_id


def add_edges(
    session_factory: Callable[[], Session],
    strengths: Sequence[float | None],
    *,
    created_at: datetime,
) -> None:
    """Insert one concept edge per strength value."""
    with closing(session_factory()) as session:
        for strength in strengths:
            session.add(
                ConceptEdge(
                    edge_type="related",
                    strength=strength,
                    created_at=created_at,
                )
            )
        session.commit()


class RecordingAlertReporter:
    """Alert sink stub that records every call."""

    def __init__(self, *, error: Exception | None = None) -> None:
        """Initialize with an optional error to raise on every call."""
        self.calls: list[tuple[list[dict[str, Any]], dict[str, Any]]] = []
        self._error = error

    def __call__(
        self,
        logger: Any,
        alert_metrics: Sequence[Mapping[str, Any]],
        context: Mapping[str, Any],
    ) -> None:
        self.calls.append(([dict(item) for item in alert_metrics], dict(context)))
        if self._error is not None:
            raise self._error
