"""
db/models/publisher_record.py

Persisted normalized publisher records, one row per dedupe key per dataset.
Kept so that a recompute can run without the raw rows being re-sent.
"""

import uuid

from sqlalchemy import Float, ForeignKey, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, UUIDPrimaryKeyMixin


class Publisher(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "publisher_records"

    dataset_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("dataset_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Normalized order; tie-breaker for every revenue ranking",
    )
    dedupe_key: Mapped[str] = mapped_column(String(512), nullable=False)
    publisher_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    publisher_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    publisher_type: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    total_revenue: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    orders: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    approved_revenue: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    pending_revenue: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    declined_revenue: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (
        UniqueConstraint("dataset_id", "dedupe_key", name="uq_publisher_records_dataset_key"),
        Index("ix_publisher_records_dataset_position", "dataset_id", "position"),
    )
