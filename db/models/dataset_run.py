"""
db/models/dataset_run.py

DatasetRun model: one ingested publisher dataset and the state of its
latest recompute pass.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument, TimestampMixin, UUIDPrimaryKeyMixin


class DatasetRunStatus:
    """Valid statuses for a dataset run."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    TERMINAL = frozenset({COMPLETED, ERROR})
    # processing is included so a pass abandoned by a dead worker can be restarted
    RECOMPUTABLE = TERMINAL | frozenset({PROCESSING})


class DatasetRun(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    Run status is mutated only by the run orchestrator.

    ``current_version_id`` points at the sealed snapshot version readers
    should see; it is swapped atomically at the end of each successful pass.
    """

    __tablename__ = "dataset_runs"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Human-readable label for this dataset",
    )

    version_label: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Optional user-facing label, e.g. 2026-Q3",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DatasetRunStatus.PENDING,
        comment="pending → processing → completed | error",
    )

    processing_progress: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="0-100",
    )

    processing_step: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    sections_ready: Mapped[list[int]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=list,
        comment="Section ids whose narrative has been accepted",
    )

    field_mapping: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Resolved canonical field → source column mapping",
    )

    normalization_summary: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
    )

    row_count: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Raw rows received",
    )

    record_count: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Publisher records after normalization",
    )

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    current_version_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
        comment="Sealed snapshot_versions.id visible to readers",
    )

    processing_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    processing_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_dataset_runs_status", "status"),
        Index("ix_dataset_runs_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<DatasetRun id={self.id} name={self.name!r} "
            f"status={self.status!r} progress={self.processing_progress}>"
        )
