"""
db/models/report_section.py

Narrative text accepted for one dashboard section of a snapshot version.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONDocument, UUIDPrimaryKeyMixin


class ReportSection(Base, UUIDPrimaryKeyMixin):
    __tablename__ = "report_sections"

    version_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("snapshot_versions.id", ondelete="CASCADE"),
        nullable=False,
    )
    dataset_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    section_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    conclusion: Mapped[str] = mapped_column(Text, nullable=False)
    facts: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        comment="Metric values the conclusion was written from",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("version_id", "section_id", name="uq_report_sections_version_section"),
    )
