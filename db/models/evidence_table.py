"""
db/models/evidence_table.py

Ordered, display-ready evidence row sets produced by one recompute pass.
"""

import uuid
from typing import Any

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument, UUIDPrimaryKeyMixin


class EvidenceTableSnapshot(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "analysis_evidence_tables"

    version_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("snapshot_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    dataset_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    table_key: Mapped[str] = mapped_column(String(100), nullable=False)
    module_id: Mapped[int] = mapped_column(Integer, nullable=False)
    data_json: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        nullable=False,
        comment="Row order is significant",
    )
    row_count: Mapped[int] = mapped_column(Integer, nullable=False)
    calc_version: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        UniqueConstraint("version_id", "table_key", name="uq_analysis_evidence_version_key"),
        Index("ix_analysis_evidence_tables_dataset_id", "dataset_id"),
    )
