"""
Repository for dataset run lifecycle persistence and status lookup.

The caller controls commit/rollback; this repository never commits.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from app.errors import InvalidRunTransitionError
from db.base import utcnow
from db.models.dataset_run import DatasetRun, DatasetRunStatus
from db.repositories.errors import DatasetRunNotFoundError

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    DatasetRunStatus.PENDING: frozenset({DatasetRunStatus.PROCESSING, DatasetRunStatus.ERROR}),
    # processing -> processing restarts a pass whose worker never finished
    DatasetRunStatus.PROCESSING: frozenset(
        {DatasetRunStatus.PROCESSING, DatasetRunStatus.COMPLETED, DatasetRunStatus.ERROR}
    ),
    DatasetRunStatus.COMPLETED: frozenset({DatasetRunStatus.PROCESSING}),
    DatasetRunStatus.ERROR: frozenset({DatasetRunStatus.PROCESSING}),
}


def can_transition(current: str, target: str) -> bool:
    return target in _ALLOWED_TRANSITIONS.get(current, frozenset())


class DatasetRunRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_run(
        self,
        *,
        name: str,
        version_label: str | None = None,
        row_count: int | None = None,
    ) -> DatasetRun:
        run = DatasetRun(
            name=name,
            version_label=version_label,
            status=DatasetRunStatus.PENDING,
            processing_progress=0,
            sections_ready=[],
            row_count=row_count,
        )
        self._session.add(run)
        self._session.flush()
        self._session.refresh(run)
        return run

    def get_run(self, dataset_id: uuid.UUID) -> DatasetRun | None:
        return self._session.get(DatasetRun, dataset_id)

    def require_run(self, dataset_id: uuid.UUID) -> DatasetRun:
        run = self.get_run(dataset_id)
        if run is None:
            raise DatasetRunNotFoundError(dataset_id)
        return run

    def lock_run(self, dataset_id: uuid.UUID) -> DatasetRun:
        """
        Load the run with a row lock (``SELECT ... FOR UPDATE``).
        """

        stmt = (
            select(DatasetRun)
            .where(DatasetRun.id == dataset_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        run = self._session.scalars(stmt).one_or_none()
        if run is None:
            raise DatasetRunNotFoundError(dataset_id)
        return run

    def list_runs(
        self,
        *,
        limit: int = 100,
        status: str | None = None,
    ) -> list[DatasetRun]:
        stmt: Select[tuple[DatasetRun]] = select(DatasetRun)
        if status:
            stmt = stmt.where(DatasetRun.status == status)
        stmt = stmt.order_by(DatasetRun.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def mark_processing(self, *, dataset_id: uuid.UUID, step: str) -> DatasetRun:
        run = self._transition(dataset_id, DatasetRunStatus.PROCESSING)
        run.processing_progress = 0
        run.processing_step = step
        run.processing_started_at = utcnow()
        run.processing_completed_at = None
        run.error_message = None
        run.sections_ready = []
        return run

    def update_progress(
        self,
        *,
        dataset_id: uuid.UUID,
        progress: int,
        step: str,
    ) -> DatasetRun:
        run = self.require_run(dataset_id)
        if run.status != DatasetRunStatus.PROCESSING:
            raise InvalidRunTransitionError(
                dataset_id=dataset_id,
                current=run.status,
                target=DatasetRunStatus.PROCESSING,
            )
        run.processing_progress = max(0, min(100, progress))
        run.processing_step = step
        return run

    def record_normalization(
        self,
        *,
        dataset_id: uuid.UUID,
        field_mapping: dict[str, Any] | None,
        summary: dict[str, Any] | None,
        row_count: int,
        record_count: int,
    ) -> DatasetRun:
        run = self.require_run(dataset_id)
        run.field_mapping = field_mapping
        run.normalization_summary = summary
        run.row_count = row_count
        run.record_count = record_count
        return run

    def mark_completed(self, *, dataset_id: uuid.UUID, step: str) -> DatasetRun:
        run = self._transition(dataset_id, DatasetRunStatus.COMPLETED)
        run.processing_progress = 100
        run.processing_step = step
        run.processing_completed_at = utcnow()
        run.error_message = None
        return run

    def mark_failed(self, *, dataset_id: uuid.UUID, error_message: str) -> DatasetRun:
        run = self._transition(dataset_id, DatasetRunStatus.ERROR)
        run.processing_completed_at = utcnow()
        run.error_message = error_message
        return run

    def append_section_ready(self, *, dataset_id: uuid.UUID, section_id: int) -> DatasetRun:
        run = self.require_run(dataset_id)
        current = list(run.sections_ready or [])
        if section_id not in current:
            # reassign so the JSON column is flagged dirty
            run.sections_ready = [*current, section_id]
        return run

    def set_current_version(self, run: DatasetRun, version_id: uuid.UUID) -> DatasetRun:
        run.current_version_id = version_id
        return run

    def _transition(self, dataset_id: uuid.UUID, target: str) -> DatasetRun:
        run = self.require_run(dataset_id)
        if not can_transition(run.status, target):
            raise InvalidRunTransitionError(
                dataset_id=dataset_id,
                current=run.status,
                target=target,
            )
        run.status = target
        return run
