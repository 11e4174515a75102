"""Data models for the structural drift monitor."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import declarative_base

# SQLAlchemy base
Base = declarative_base()


class GraphVersion(Base):
    """Immutable snapshot identifier of the concept graph."""

    __tablename__ = "graph_versions"

    graph_version = Column(String(200), primary_key=True)
    status = Column(String(50), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class Concept(Base):
    """Concept node; a canonical reference marks an alias or merge child."""

    __tablename__ = "concepts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    key = Column(String(500), nullable=True)
    scope = Column(String(50), nullable=False, default="global")
    canonical_concept_id = Column(Uuid(as_uuid=True), ForeignKey("concepts.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    __table_args__ = (
        Index("ix_concepts_scope_updated_at", "scope", "updated_at"),
        Index("ix_concepts_scope_created_at", "scope", "created_at"),
    )


class ConceptEdge(Base):
    """Weighted edge between two concepts."""

    __tablename__ = "concept_edges"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    from_concept_id = Column(Uuid(as_uuid=True), ForeignKey("concepts.id"), nullable=True)
    to_concept_id = Column(Uuid(as_uuid=True), ForeignKey("concepts.id"), nullable=True)
    edge_type = Column(String(100), nullable=True)
    strength = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    __table_args__ = (Index("ix_concept_edges_created_at", "created_at"),)


class StructuralDecisionTrace(Base):
    """Record of one structural merge/link decision and its candidate scores."""

    __tablename__ = "structural_decision_traces"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    occurred_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    graph_version = Column(String(200), nullable=True)
    decision_type = Column(String(100), nullable=True)
    candidates = Column(JSON, nullable=True)
    chosen = Column(JSON, nullable=True)
    thresholds = Column(JSON, nullable=True)
    __table_args__ = (
        Index("ix_structural_decision_traces_version_occurred", "graph_version", "occurred_at"),
    )


class StructuralDriftMetric(Base):
    """Append-only drift indicator row; one per metric per run."""

    __tablename__ = "structural_drift_metrics"

    id = Column(Integer, primary_key=True)
    graph_version = Column(String(200), nullable=False)
    metric_name = Column(String(100), nullable=False)
    window_start = Column(DateTime(timezone=True), nullable=False)
    window_end = Column(DateTime(timezone=True), nullable=False)
    value = Column(Float, nullable=False, default=0.0)
    threshold = Column(Float, nullable=False, default=0.0)
    status = Column(String(20), nullable=False)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    __table_args__ = (
        Index(
            "ix_structural_drift_metrics_version_name_window",
            "graph_version",
            "metric_name",
            "window_end",
        ),
        {"sqlite_autoincrement": True},
    )


class RollbackEvent(Base):
    """Graph version rollback event; the monitor only records recommendations."""

    __tablename__ = "rollback_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    graph_version_from = Column(String(200), nullable=False)
    graph_version_to = Column(String(200), nullable=True)
    trigger = Column(String(100), nullable=False)
    status = Column(String(50), nullable=False)
    notes = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    __table_args__ = (
        Index(
            "ix_rollback_events_from_trigger_created",
            "graph_version_from",
            "trigger",
            "created_at",
        ),
    )
