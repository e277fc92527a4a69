"""create publisher analytics tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "dataset_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("version_label", sa.String(length=100), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("processing_progress", sa.Integer(), nullable=False),
        sa.Column("processing_step", sa.String(length=100), nullable=True),
        sa.Column("sections_ready", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("field_mapping", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("normalization_summary", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("row_count", sa.Integer(), nullable=True),
        sa.Column("record_count", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("current_version_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("processing_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dataset_runs_status", "dataset_runs", ["status"], unique=False)
    op.create_index("ix_dataset_runs_created_at", "dataset_runs", ["created_at"], unique=False)

    op.create_table(
        "publisher_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dataset_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("dedupe_key", sa.String(length=512), nullable=False),
        sa.Column("publisher_id", sa.String(length=255), nullable=True),
        sa.Column("publisher_name", sa.String(length=512), nullable=True),
        sa.Column("publisher_type", sa.String(length=255), nullable=False),
        sa.Column("total_revenue", sa.Float(), nullable=False),
        sa.Column("total_commission", sa.Float(), nullable=False),
        sa.Column("orders", sa.Float(), nullable=False),
        sa.Column("approved_revenue", sa.Float(), nullable=False),
        sa.Column("pending_revenue", sa.Float(), nullable=False),
        sa.Column("declined_revenue", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["dataset_id"], ["dataset_runs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dataset_id", "dedupe_key", name="uq_publisher_records_dataset_key"),
    )
    op.create_index(
        "ix_publisher_records_dataset_position",
        "publisher_records",
        ["dataset_id", "position"],
        unique=False,
    )

    op.create_table(
        "snapshot_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dataset_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("calc_version", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("metric_count", sa.Integer(), nullable=False),
        sa.Column("table_count", sa.Integer(), nullable=False),
        sa.Column("sealed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["dataset_id"], ["dataset_runs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_snapshot_versions_dataset_id", "snapshot_versions", ["dataset_id"], unique=False)

    op.create_table(
        "analysis_metrics",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dataset_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("metric_key", sa.String(length=255), nullable=False),
        sa.Column("value_num", sa.Float(), nullable=False),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("calc_version", sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(["version_id"], ["snapshot_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("version_id", "metric_key", name="uq_analysis_metrics_version_key"),
    )
    op.create_index("ix_analysis_metrics_dataset_id", "analysis_metrics", ["dataset_id"], unique=False)

    op.create_table(
        "analysis_evidence_tables",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dataset_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("table_key", sa.String(length=100), nullable=False),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("data_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("row_count", sa.Integer(), nullable=False),
        sa.Column("calc_version", sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(["version_id"], ["snapshot_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("version_id", "table_key", name="uq_analysis_evidence_version_key"),
    )
    op.create_index(
        "ix_analysis_evidence_tables_dataset_id",
        "analysis_evidence_tables",
        ["dataset_id"],
        unique=False,
    )

    op.create_table(
        "report_sections",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("version_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dataset_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("conclusion", sa.Text(), nullable=False),
        sa.Column("facts", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["version_id"], ["snapshot_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("version_id", "section_id", name="uq_report_sections_version_section"),
    )


def downgrade() -> None:
    op.drop_table("report_sections")
    op.drop_index("ix_analysis_evidence_tables_dataset_id", table_name="analysis_evidence_tables")
    op.drop_table("analysis_evidence_tables")
    op.drop_index("ix_analysis_metrics_dataset_id", table_name="analysis_metrics")
    op.drop_table("analysis_metrics")
    op.drop_index("ix_snapshot_versions_dataset_id", table_name="snapshot_versions")
    op.drop_table("snapshot_versions")
    op.drop_index("ix_publisher_records_dataset_position", table_name="publisher_records")
    op.drop_table("publisher_records")
    op.drop_index("ix_dataset_runs_created_at", table_name="dataset_runs")
    op.drop_index("ix_dataset_runs_status", table_name="dataset_runs")
    op.drop_table("dataset_runs")
