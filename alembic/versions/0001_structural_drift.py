"""Structural drift monitor schema.

Revision ID: 0001_structural_drift
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_structural_drift"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create graph, decision trace, drift metric and rollback tables."""
    op.create_table(
        "graph_versions",
        sa.Column("graph_version", sa.String(length=200), primary_key=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "concepts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("key", sa.String(length=500), nullable=True),
        sa.Column("scope", sa.String(length=50), nullable=False, server_default="global"),
        sa.Column(
            "canonical_concept_id",
            sa.Uuid(),
            sa.ForeignKey("concepts.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_concepts_scope_updated_at", "concepts", ["scope", "updated_at"])
    op.create_index("ix_concepts_scope_created_at", "concepts", ["scope", "created_at"])
    op.create_table(
        "concept_edges",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("from_concept_id", sa.Uuid(), sa.ForeignKey("concepts.id"), nullable=True),
        sa.Column("to_concept_id", sa.Uuid(), sa.ForeignKey("concepts.id"), nullable=True),
        sa.Column("edge_type", sa.String(length=100), nullable=True),
        sa.Column("strength", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_concept_edges_created_at", "concept_edges", ["created_at"])
    op.create_table(
        "structural_decision_traces",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("graph_version", sa.String(length=200), nullable=True),
        sa.Column("decision_type", sa.String(length=100), nullable=True),
        sa.Column("candidates", sa.JSON(), nullable=True),
        sa.Column("chosen", sa.JSON(), nullable=True),
        sa.Column("thresholds", sa.JSON(), nullable=True),
    )
    op.create_index(
        "ix_structural_decision_traces_version_occurred",
        "structural_decision_traces",
        ["graph_version", "occurred_at"],
    )
    op.create_table(
        "structural_drift_metrics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("graph_version", sa.String(length=200), nullable=False),
        sa.Column("metric_name", sa.String(length=100), nullable=False),
        sa.Column("window_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("window_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("threshold", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_structural_drift_metrics_version_name_window",
        "structural_drift_metrics",
        ["graph_version", "metric_name", "window_end"],
    )
    op.create_table(
        "rollback_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("graph_version_from", sa.String(length=200), nullable=False),
        sa.Column("graph_version_to", sa.String(length=200), nullable=True),
        sa.Column("trigger", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("notes", sa.JSON(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_rollback_events_from_trigger_created",
        "rollback_events",
        ["graph_version_from", "trigger", "created_at"],
    )


def downgrade() -> None:
    """Drop structural drift monitor tables."""
    op.drop_index("ix_rollback_events_from_trigger_created", table_name="rollback_events")
    op.drop_table("rollback_events")
    op.drop_index(
        "ix_structural_drift_metrics_version_name_window",
        table_name="structural_drift_metrics",
    )
    op.drop_table("structural_drift_metrics")
    op.drop_index(
        "ix_structural_decision_traces_version_occurred",
        table_name="structural_decision_traces",
    )
    op.drop_table("structural_decision_traces")
    op.drop_index("ix_concept_edges_created_at", table_name="concept_edges")
    op.drop_table("concept_edges")
    op.drop_index("ix_concepts_scope_created_at", table_name="concepts")
    op.drop_index("ix_concepts_scope_updated_at", table_name="concepts")
    op.drop_table("concepts")
    op.drop_table("graph_versions")
