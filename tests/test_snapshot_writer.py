"""
tests/test_snapshot_writer.py

SnapshotWriter against an in-memory SQLite database: version swap,
pruning, and failure visibility.
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from analytics.contracts import EvidenceTableData, MetricRow
from app.errors import PersistenceError
from app.services.snapshot_writer import SnapshotWriter
from db.models.dataset_run import DatasetRun
from db.models.snapshot_version import SnapshotVersion, SnapshotVersionStatus
from db.repositories.dataset_run_repository import DatasetRunRepository
from db.repositories.snapshot_repository import SnapshotRepository


def _metrics(value: float) -> list[MetricRow]:
    return [
        MetricRow(metric_key="total_gmv", value_num=value, module_id=0),
        MetricRow(metric_key="active_ratio", value_num=0.5, module_id=1),
        MetricRow(metric_key="content_share", value_num=1.0, module_id=3),
    ]


def _tables(rows: list[dict]) -> list[EvidenceTableData]:
    return [
        EvidenceTableData(table_key="topn_table", module_id=2, rows=rows),
        EvidenceTableData(table_key="tier_summary", module_id=6, rows=[]),
    ]


@pytest.fixture()
def dataset(session: Session) -> DatasetRun:
    run = DatasetRunRepository(session).create_run(name="Q3 publishers")
    session.commit()
    return run


def _version_count(session: Session, dataset: DatasetRun) -> int:
    return session.scalar(
        select(func.count()).select_from(SnapshotVersion).where(SnapshotVersion.dataset_id == dataset.id)
    )


def _failing_insert(self, **kwargs) -> int:
    raise OperationalError("INSERT INTO analysis_evidence_tables", {}, Exception("disk I/O error"))


class TestSnapshotWriter:
    def test_write_seals_version_and_swaps_pointer(self, session: Session, dataset: DatasetRun) -> None:
        writer = SnapshotWriter(batch_size=2)

        result = writer.write(
            db=session,
            dataset_id=dataset.id,
            calc_version="2026-10-19T09:00:00+00:00",
            metrics=_metrics(150.0),
            tables=_tables([{"rank": 1}]),
        )

        session.expire_all()
        run = session.get(DatasetRun, dataset.id)
        version = session.get(SnapshotVersion, result.version_id)
        assert run.current_version_id == result.version_id
        assert version.status == SnapshotVersionStatus.SEALED
        assert version.metric_count == 3
        assert version.table_count == 2
        assert result.metric_count == 3

        metrics = SnapshotRepository(session).list_metrics(result.version_id)
        assert {row.metric_key: row.value_num for row in metrics}["total_gmv"] == 150.0
        assert all(row.calc_version == "2026-10-19T09:00:00+00:00" for row in metrics)

    def test_second_write_replaces_and_prunes_previous_version(
        self, session: Session, dataset: DatasetRun
    ) -> None:
        writer = SnapshotWriter()
        first = writer.write(
            db=session, dataset_id=dataset.id, calc_version="v1", metrics=_metrics(100.0), tables=_tables([])
        )
        second = writer.write(
            db=session, dataset_id=dataset.id, calc_version="v2", metrics=_metrics(200.0), tables=_tables([])
        )

        snapshots = SnapshotRepository(session)
        assert second.pruned_versions == 1
        assert snapshots.get_version(first.version_id) is None
        assert snapshots.list_metrics(first.version_id) == []
        assert _version_count(session, dataset) == 1
        assert {row.metric_key: row.value_num for row in snapshots.list_metrics(second.version_id)}[
            "total_gmv"
        ] == 200.0

    def test_pruning_can_be_disabled(self, session: Session, dataset: DatasetRun) -> None:
        writer = SnapshotWriter(prune_prior_versions=False)
        for label in ("v1", "v2"):
            writer.write(db=session, dataset_id=dataset.id, calc_version=label, metrics=_metrics(1.0), tables=[])

        assert _version_count(session, dataset) == 2

    def test_failed_write_keeps_previous_snapshot_current(
        self, session: Session, dataset: DatasetRun, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        writer = SnapshotWriter()
        good = writer.write(
            db=session, dataset_id=dataset.id, calc_version="v1", metrics=_metrics(100.0), tables=_tables([])
        )

        monkeypatch.setattr(SnapshotRepository, "insert_evidence", _failing_insert)
        with pytest.raises(PersistenceError):
            writer.write(
                db=session,
                dataset_id=dataset.id,
                calc_version="v2",
                metrics=_metrics(999.0),
                tables=_tables([]),
            )

        session.expire_all()
        run = session.get(DatasetRun, dataset.id)
        assert run.current_version_id == good.version_id
        metrics = SnapshotRepository(session).list_metrics(run.current_version_id)
        assert {row.metric_key: row.value_num for row in metrics}["total_gmv"] == 100.0

        building = session.scalars(
            select(SnapshotVersion).where(SnapshotVersion.status == SnapshotVersionStatus.BUILDING)
        ).all()
        assert len(building) == 1
        # metric batches committed before the failure stay under the building version
        assert len(SnapshotRepository(session).list_metrics(building[0].id)) == 3

    def test_next_successful_write_removes_abandoned_building_version(
        self, session: Session, dataset: DatasetRun, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        writer = SnapshotWriter()
        with monkeypatch.context() as patch:
            patch.setattr(SnapshotRepository, "insert_evidence", _failing_insert)
            with pytest.raises(PersistenceError):
                writer.write(
                    db=session,
                    dataset_id=dataset.id,
                    calc_version="v1",
                    metrics=_metrics(1.0),
                    tables=_tables([]),
                )

        result = writer.write(
            db=session, dataset_id=dataset.id, calc_version="v2", metrics=_metrics(2.0), tables=_tables([])
        )

        assert result.pruned_versions == 1
        assert _version_count(session, dataset) == 1

    def test_duplicate_metric_keys_keep_last_value(self, session: Session, dataset: DatasetRun) -> None:
        metrics = [
            MetricRow(metric_key="total_gmv", value_num=1.0, module_id=0),
            MetricRow(metric_key="total_gmv", value_num=2.0, module_id=0),
        ]

        result = SnapshotWriter().write(
            db=session, dataset_id=dataset.id, calc_version="v1", metrics=metrics, tables=[]
        )

        rows = SnapshotRepository(session).list_metrics(result.version_id)
        assert [(row.metric_key, row.value_num) for row in rows] == [("total_gmv", 2.0)]
