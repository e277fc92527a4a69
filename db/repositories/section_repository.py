"""
Repository for narrative report sections.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db.models.report_section import ReportSection


class SectionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def save_section(
        self,
        *,
        version_id: uuid.UUID,
        dataset_id: uuid.UUID,
        section_id: int,
        title: str,
        conclusion: str,
        facts: dict[str, Any],
    ) -> ReportSection:
        """
        Store a section, replacing any earlier draft for the same version.
        """
        self._session.execute(
            delete(ReportSection).where(
                ReportSection.version_id == version_id,
                ReportSection.section_id == section_id,
            )
        )
        section = ReportSection(
            version_id=version_id,
            dataset_id=dataset_id,
            section_id=section_id,
            title=title,
            conclusion=conclusion,
            facts=facts,
        )
        self._session.add(section)
        self._session.flush()
        return section

    def list_sections(self, version_id: uuid.UUID) -> list[ReportSection]:
        stmt = (
            select(ReportSection)
            .where(ReportSection.version_id == version_id)
            .order_by(ReportSection.section_id)
        )
        return list(self._session.scalars(stmt).all())
