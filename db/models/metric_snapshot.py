"""
db/models/metric_snapshot.py

Scalar metric rows produced by one recompute pass.
"""

import uuid

from sqlalchemy import Float, ForeignKey, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, UUIDPrimaryKeyMixin


class MetricSnapshot(Base, UUIDPrimaryKeyMixin):
    """
    ``metric_key`` is either a fixed key (``total_gmv``, ``top10_share`` …)
    or a mix bucket share (``{bucket}_share``).
    """

    __tablename__ = "analysis_metrics"

    version_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("snapshot_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    dataset_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    metric_key: Mapped[str] = mapped_column(String(255), nullable=False)
    value_num: Mapped[float] = mapped_column(Float, nullable=False)
    module_id: Mapped[int] = mapped_column(Integer, nullable=False)
    calc_version: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        UniqueConstraint("version_id", "metric_key", name="uq_analysis_metrics_version_key"),
        Index("ix_analysis_metrics_dataset_id", "dataset_id"),
    )
