"""
db/repositories/snapshot_repository.py

Persistence for snapshot versions and their metric/evidence rows.

All methods are transaction-safe. The caller controls commit/rollback;
this repository never commits on its own.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from analytics.contracts import EvidenceTableData, MetricRow
from db.base import utcnow
from db.models.evidence_table import EvidenceTableSnapshot
from db.models.metric_snapshot import MetricSnapshot
from db.models.report_section import ReportSection
from db.models.snapshot_version import SnapshotVersion, SnapshotVersionStatus

_DEFAULT_BATCH_SIZE = 500


class SnapshotRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_version(self, *, dataset_id: uuid.UUID, calc_version: str) -> SnapshotVersion:
        version = SnapshotVersion(
            dataset_id=dataset_id,
            calc_version=calc_version,
            status=SnapshotVersionStatus.BUILDING,
        )
        self._session.add(version)
        self._session.flush()
        return version

    def insert_metrics(
        self,
        *,
        version: SnapshotVersion,
        rows: Sequence[MetricRow],
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Insert metric rows for *version* in batches of ``batch_size``.

        Rows are deduplicated on ``metric_key``; the last occurrence wins.
        """
        deduped = list({row.metric_key: row for row in rows}.values())
        payloads = [
            {
                "id": uuid.uuid4(),
                "version_id": version.id,
                "dataset_id": version.dataset_id,
                "metric_key": row.metric_key,
                "value_num": row.value_num,
                "module_id": row.module_id,
                "calc_version": version.calc_version,
            }
            for row in deduped
        ]
        return self._insert_batches(MetricSnapshot, payloads, batch_size)

    def insert_evidence(
        self,
        *,
        version: SnapshotVersion,
        tables: Sequence[EvidenceTableData],
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        payloads = [
            {
                "id": uuid.uuid4(),
                "version_id": version.id,
                "dataset_id": version.dataset_id,
                "table_key": table.table_key,
                "module_id": table.module_id,
                "data_json": table.rows,
                "row_count": table.row_count,
                "calc_version": version.calc_version,
            }
            for table in tables
        ]
        return self._insert_batches(EvidenceTableSnapshot, payloads, batch_size)

    def seal_version(
        self,
        version: SnapshotVersion,
        *,
        metric_count: int,
        table_count: int,
    ) -> SnapshotVersion:
        version.status = SnapshotVersionStatus.SEALED
        version.metric_count = metric_count
        version.table_count = table_count
        version.sealed_at = utcnow()
        return version

    def delete_versions(self, version_ids: Sequence[uuid.UUID]) -> int:
        """
        Delete versions together with every row written under them.
        """
        if not version_ids:
            return 0
        ids = list(version_ids)
        for model in (ReportSection, MetricSnapshot, EvidenceTableSnapshot):
            self._session.execute(delete(model).where(model.version_id.in_(ids)))
        result = self._session.execute(delete(SnapshotVersion).where(SnapshotVersion.id.in_(ids)))
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_version(self, version_id: uuid.UUID) -> SnapshotVersion | None:
        return self._session.get(SnapshotVersion, version_id)

    def list_version_ids(
        self,
        dataset_id: uuid.UUID,
        *,
        exclude: uuid.UUID | None = None,
    ) -> list[uuid.UUID]:
        stmt = select(SnapshotVersion.id).where(SnapshotVersion.dataset_id == dataset_id)
        if exclude is not None:
            stmt = stmt.where(SnapshotVersion.id != exclude)
        return list(self._session.scalars(stmt).all())

    def list_metrics(self, version_id: uuid.UUID) -> list[MetricSnapshot]:
        stmt = (
            select(MetricSnapshot)
            .where(MetricSnapshot.version_id == version_id)
            .order_by(MetricSnapshot.module_id, MetricSnapshot.metric_key)
        )
        return list(self._session.scalars(stmt).all())

    def list_evidence(self, version_id: uuid.UUID) -> list[EvidenceTableSnapshot]:
        stmt = (
            select(EvidenceTableSnapshot)
            .where(EvidenceTableSnapshot.version_id == version_id)
            .order_by(EvidenceTableSnapshot.module_id, EvidenceTableSnapshot.table_key)
        )
        return list(self._session.scalars(stmt).all())

    def get_evidence(self, version_id: uuid.UUID, table_key: str) -> EvidenceTableSnapshot | None:
        stmt = select(EvidenceTableSnapshot).where(
            EvidenceTableSnapshot.version_id == version_id,
            EvidenceTableSnapshot.table_key == table_key,
        )
        return self._session.scalars(stmt).one_or_none()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _insert_batches(self, model: type, payloads: list[dict], batch_size: int) -> int:
        size = max(1, batch_size)
        for start in range(0, len(payloads), size):
            self._session.execute(insert(model), payloads[start : start + size])
        return len(payloads)
