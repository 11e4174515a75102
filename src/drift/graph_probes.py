"""Server-side aggregate probes over the concept graph and decision traces."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from drift.errors import GraphProbeError
from models import Concept, ConceptEdge, GraphVersion, StructuralDecisionTrace
from time_utils import normalize_for_bind

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"
ACTIVE_STATUS = "active"


@dataclass(frozen=True)
class ProbeResult:
    """Raw value, sample count and metadata from one graph probe."""

    value: float
    samples: int
    meta: dict[str, Any] = field(default_factory=dict)


def compute_remerge_rate(session: Session, start: datetime, end: datetime) -> ProbeResult:
    """Share of global concepts updated in the window that were re-parented.

    A re-merge is a concept created before ``start`` that, within
    ``[start, end)``, gained a canonical parent.
    """
    window_start = normalize_for_bind(session, start)
    window_end = normalize_for_bind(session, end)
    updated_in_window = (
        Concept.scope == GLOBAL_SCOPE,
        Concept.updated_at >= window_start,
        Concept.updated_at < window_end,
    )
    try:
        total = int(
            session.query(func.count(Concept.id)).filter(*updated_in_window).scalar() or 0
        )
    except SQLAlchemyError as exc:
        raise GraphProbeError("remerge_rate", 0, exc) from exc

    try:
        remerged = int(
            session.query(func.count(Concept.id))
            .filter(
                *updated_in_window,
                Concept.canonical_concept_id.is_not(None),
                Concept.created_at < window_start,
            )
            .scalar()
            or 0
        )
    except SQLAlchemyError as exc:
        raise GraphProbeError("remerge_rate", total, exc) from exc

    try:
        new_aliases = int(
            session.query(func.count(Concept.id))
            .filter(
                Concept.scope == GLOBAL_SCOPE,
                Concept.created_at >= window_start,
                Concept.created_at < window_end,
                Concept.canonical_concept_id.is_not(None),
            )
            .scalar()
            or 0
        )
    except SQLAlchemyError:
        logger.debug("New alias count failed; reporting zero.", exc_info=True)
        new_aliases = 0

    rate = remerged / total if total > 0 else 0.0
    return ProbeResult(
        value=rate,
        samples=total,
        meta={"remerge_updates": remerged, "new_aliases": new_aliases},
    )


def compute_edge_confidence_shift(session: Session, start: datetime, end: datetime) -> ProbeResult:
    """Absolute change in mean edge strength against the preceding window.

    The baseline window has the same length and ends at ``start``. When either
    window has no edges the probe reports zero samples.
    """
    previous_start = start - (end - start)
    try:
        current_mean, current_count = _edge_strength_stats(session, start, end)
    except SQLAlchemyError as exc:
        raise GraphProbeError("edge_confidence_shift", 0, exc) from exc
    try:
        previous_mean, previous_count = _edge_strength_stats(session, previous_start, start)
    except SQLAlchemyError as exc:
        raise GraphProbeError("edge_confidence_shift", current_count, exc) from exc

    meta: dict[str, Any] = {
        "current_mean": current_mean,
        "current_count": current_count,
        "previous_mean": previous_mean,
        "previous_count": previous_count,
    }
    if current_count == 0 or previous_count == 0:
        meta["baseline_missing"] = previous_count == 0
        meta["current_missing"] = current_count == 0
        return ProbeResult(value=0.0, samples=0, meta=meta)
    shift = abs(current_mean - previous_mean)
    return ProbeResult(value=shift, samples=current_count + previous_count, meta=meta)


def _edge_strength_stats(session: Session, start: datetime, end: datetime) -> tuple[float, int]:
    """Return (mean strength, edge count) for edges created in ``[start, end)``."""
    row = (
        session.query(
            func.coalesce(func.avg(ConceptEdge.strength), 0.0),
            func.count(ConceptEdge.id),
        )
        .filter(
            ConceptEdge.created_at >= normalize_for_bind(session, start),
            ConceptEdge.created_at < normalize_for_bind(session, end),
        )
        .one()
    )
    return float(row[0] or 0.0), int(row[1] or 0)


def latest_graph_version(session: Session) -> str | None:
    """Return the most recently updated active graph version, else the newest overall."""
    active = (
        session.query(GraphVersion.graph_version)
        .filter(GraphVersion.status == ACTIVE_STATUS)
        .order_by(GraphVersion.updated_at.desc())
        .limit(1)
        .scalar()
    )
    if active:
        return str(active)
    newest = (
        session.query(GraphVersion.graph_version)
        .order_by(GraphVersion.updated_at.desc())
        .limit(1)
        .scalar()
    )
    if newest:
        return str(newest)
    return None


def list_structural_traces(
    session: Session,
    *,
    graph_version: str,
    start: datetime,
    end: datetime,
    decision_types: Sequence[str] = (),
    max_samples: int = 0,
) -> list[StructuralDecisionTrace]:
    """Return decision traces in ``[start, end)``, newest first."""
    query = session.query(StructuralDecisionTrace).filter(
        StructuralDecisionTrace.occurred_at >= normalize_for_bind(session, start),
        StructuralDecisionTrace.occurred_at < normalize_for_bind(session, end),
    )
    if graph_version.strip():
        query = query.filter(StructuralDecisionTrace.graph_version == graph_version)
    if decision_types:
        query = query.filter(StructuralDecisionTrace.decision_type.in_(list(decision_types)))
    query = query.order_by(StructuralDecisionTrace.occurred_at.desc())
    if max_samples > 0:
        query = query.limit(max_samples)
    return list(query.all())
