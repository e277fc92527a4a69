"""
db/models/snapshot_version.py

One recompute pass over a dataset.  Metric, evidence and section rows are
written under a ``building`` version and become visible only once the
version is ``sealed`` and the dataset's current-version pointer is swapped.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, UUIDPrimaryKeyMixin


class SnapshotVersionStatus:
    BUILDING = "building"
    SEALED = "sealed"


class SnapshotVersion(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "snapshot_versions"

    dataset_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("dataset_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    calc_version: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="UTC ISO timestamp tagging the recompute pass",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SnapshotVersionStatus.BUILDING,
    )
    metric_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    table_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sealed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (Index("ix_snapshot_versions_dataset_id", "dataset_id"),)
