"""
app/services/snapshot_writer.py

Publishes one recompute pass as a new snapshot version.

Write protocol
--------------
1. Create a ``building`` snapshot version and commit it.
2. Insert metric rows, then evidence tables, committing after every batch.
3. In one transaction: lock the dataset run row, seal the version, and
   swap ``current_version_id`` to it.
4. Prune every other version of the dataset (best-effort).

Readers only follow ``current_version_id``, so they see either the previous
sealed snapshot or the new one, never a mixture.  A failure before step 3
leaves a ``building`` version with partial rows; it is invisible to readers
and removed by the next successful pass.

Concurrent writers for one dataset must be serialized by the caller
(see :mod:`app.services.dataset_locks`).
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from analytics.contracts import EvidenceTableData, MetricRow
from app.config import get_pipeline_settings
from app.errors import PersistenceError
from app.logging_utils import log_event
from db.repositories.dataset_run_repository import DatasetRunRepository
from db.repositories.errors import RepositoryError
from db.repositories.snapshot_repository import SnapshotRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotWriteResult:
    version_id: uuid.UUID
    calc_version: str
    metric_count: int
    table_count: int
    pruned_versions: int


class SnapshotWriter:
    """
    Writes metric and evidence rows under a fresh version and flips the
    dataset's current-version pointer once everything is in place.
    """

    def __init__(self, *, batch_size: int = 500, prune_prior_versions: bool = True) -> None:
        self._batch_size = max(1, batch_size)
        self._prune_prior_versions = prune_prior_versions

    def write(
        self,
        *,
        db: Session,
        dataset_id: uuid.UUID,
        calc_version: str,
        metrics: Sequence[MetricRow],
        tables: Sequence[EvidenceTableData],
    ) -> SnapshotWriteResult:
        """
        Persist *metrics* and *tables* as the dataset's new current snapshot.

        Parameters
        ----------
        db:
            Active SQLAlchemy session.  The writer commits after each batch
            and rolls back only the failing transaction.
        dataset_id:
            Dataset run the snapshot belongs to.
        calc_version:
            Tag for this recompute pass.
        metrics:
            Scalar metric rows.
        tables:
            Evidence tables, in build order.

        Raises
        ------
        PersistenceError
            If any write before the pointer swap fails.  Rows already
            committed under the building version are left in place.
        """
        started = time.monotonic()
        snapshots = SnapshotRepository(db)
        runs = DatasetRunRepository(db)
        version_id: uuid.UUID | None = None

        try:
            version = snapshots.create_version(dataset_id=dataset_id, calc_version=calc_version)
            db.commit()
            version_id = version.id

            metric_count = 0
            for chunk in _chunks(metrics, self._batch_size):
                metric_count += snapshots.insert_metrics(version=version, rows=chunk)
                db.commit()

            table_count = 0
            for chunk in _chunks(tables, self._batch_size):
                table_count += snapshots.insert_evidence(version=version, tables=chunk)
                db.commit()

            run = runs.lock_run(dataset_id)
            snapshots.seal_version(version, metric_count=metric_count, table_count=table_count)
            runs.set_current_version(run, version.id)
            db.commit()
        except (SQLAlchemyError, RepositoryError) as exc:
            db.rollback()
            log_event(
                logger,
                logging.ERROR,
                "snapshot_write_failed",
                dataset_id=dataset_id,
                version_id=version_id,
                calc_version=calc_version,
                error=str(exc),
            )
            raise PersistenceError(
                f"Failed to write snapshot for dataset {dataset_id}: {exc}"
            ) from exc

        log_event(
            logger,
            logging.INFO,
            "snapshot_sealed",
            dataset_id=dataset_id,
            version_id=version.id,
            calc_version=calc_version,
            metric_count=metric_count,
            table_count=table_count,
            elapsed_seconds=round(time.monotonic() - started, 3),
        )

        pruned = self._prune(db, dataset_id=dataset_id, keep=version.id) if self._prune_prior_versions else 0
        return SnapshotWriteResult(
            version_id=version.id,
            calc_version=calc_version,
            metric_count=metric_count,
            table_count=table_count,
            pruned_versions=pruned,
        )

    def _prune(self, db: Session, *, dataset_id: uuid.UUID, keep: uuid.UUID) -> int:
        """
        Delete every version of the dataset except *keep*; failures only log.
        """
        snapshots = SnapshotRepository(db)
        try:
            stale = snapshots.list_version_ids(dataset_id, exclude=keep)
            deleted = snapshots.delete_versions(stale)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(
                "Pruning prior snapshot versions failed dataset_id=%s: %s",
                dataset_id,
                exc,
                exc_info=True,
            )
            return 0

        if deleted:
            log_event(
                logger,
                logging.INFO,
                "snapshot_versions_pruned",
                dataset_id=dataset_id,
                kept_version_id=keep,
                deleted=deleted,
            )
        return deleted


def _chunks(items: Sequence, size: int) -> list[Sequence]:
    return [items[start : start + size] for start in range(0, len(items), size)]


@lru_cache(maxsize=1)
def get_snapshot_writer() -> SnapshotWriter:
    settings = get_pipeline_settings()
    return SnapshotWriter(
        batch_size=settings.write_batch_size,
        prune_prior_versions=settings.prune_prior_versions,
    )
