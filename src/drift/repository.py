"""Repository helpers for drift metric and rollback event persistence."""

from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Sequence
from uuid import UUID, uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import RollbackEvent, StructuralDriftMetric
from time_utils import normalize_for_bind


@dataclass(frozen=True)
class StructuralDriftMetricCreateInput:
    """Input payload for one drift metric row."""

    graph_version: str
    metric_name: str
    window_start: datetime
    window_end: datetime
    value: float
    threshold: float
    status: str
    metadata: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class RollbackEventCreateInput:
    """Input payload for a rollback recommendation record."""

    graph_version_from: str
    trigger: str
    status: str
    notes: Mapping[str, Any] | None = None
    graph_version_to: str | None = None
    error: str | None = None
    event_id: UUID | None = None
    created_at: datetime | None = None


class StructuralDriftMetricRepository:
    """Append-only repository for structural drift metric rows."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def create_many(self, rows: Sequence[StructuralDriftMetricCreateInput]) -> int:
        """Insert all rows in one transaction and return how many were written."""
        if not rows:
            return 0

        def handler(session: Session) -> int:
            for row in rows:
                session.add(
                    StructuralDriftMetric(
                        graph_version=row.graph_version,
                        metric_name=row.metric_name,
                        window_start=normalize_for_bind(session, row.window_start),
                        window_end=normalize_for_bind(session, row.window_end),
                        value=row.value,
                        threshold=row.threshold,
                        status=row.status,
                        meta=dict(row.metadata) if row.metadata is not None else None,
                    )
                )
            session.flush()
            return len(rows)

        return self._execute(handler)

    def list_for_graph_version(
        self,
        graph_version: str,
        *,
        limit: int | None = None,
    ) -> list[StructuralDriftMetric]:
        """Return metric rows for a graph version ordered by window_end desc."""

        def handler(session: Session) -> list[StructuralDriftMetric]:
            query = (
                session.query(StructuralDriftMetric)
                .filter(StructuralDriftMetric.graph_version == graph_version)
                .order_by(
                    StructuralDriftMetric.window_end.desc(),
                    StructuralDriftMetric.id.asc(),
                )
            )
            if limit is not None:
                query = query.limit(limit)
            return list(query.all())

        return self._execute(handler)

    def _execute(self, handler):
        """Execute repository work inside a managed session."""
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                result = handler(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result


class RollbackEventRepository:
    """Repository for rollback recommendation events."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize repository with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def create(self, payload: RollbackEventCreateInput) -> RollbackEvent:
        """Create and persist a rollback event."""

        def handler(session: Session) -> RollbackEvent:
            event = RollbackEvent(
                id=payload.event_id or uuid4(),
                graph_version_from=payload.graph_version_from,
                graph_version_to=payload.graph_version_to,
                trigger=payload.trigger,
                status=payload.status,
                notes=dict(payload.notes) if payload.notes is not None else None,
                error=payload.error,
            )
            if payload.created_at is not None:
                event.created_at = normalize_for_bind(session, payload.created_at)
            session.add(event)
            session.flush()
            return event

        return self._execute(handler)

    def count_recent(self, graph_version: str, trigger: str, cutoff: datetime) -> int:
        """Count events for a graph version and trigger created at or after cutoff."""

        def handler(session: Session) -> int:
            count = (
                session.query(func.count(RollbackEvent.id))
                .filter(
                    RollbackEvent.graph_version_from == graph_version,
                    RollbackEvent.trigger == trigger,
                    RollbackEvent.created_at >= normalize_for_bind(session, cutoff),
                )
                .scalar()
            )
            return int(count or 0)

        return self._execute(handler)

    def list_for_graph_version(self, graph_version: str) -> list[RollbackEvent]:
        """Return rollback events for a graph version, newest first."""

        def handler(session: Session) -> list[RollbackEvent]:
            return list(
                session.query(RollbackEvent)
                .filter(RollbackEvent.graph_version_from == graph_version)
                .order_by(RollbackEvent.created_at.desc())
                .all()
            )

        return self._execute(handler)

    def _execute(self, handler):
        """Execute repository work inside a managed session."""
        with closing(self._session_factory()) as session:
            session.expire_on_commit = False
            try:
                result = handler(session)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result
