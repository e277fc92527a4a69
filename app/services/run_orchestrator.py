"""
app/services/run_orchestrator.py

Recompute pipeline orchestrator.

Wires RecordNormalizer → AggregationEngine → EvidenceTableBuilder →
SnapshotWriter into one run and owns every DatasetRun status transition.

State machine
-------------
pending → processing → completed | error
completed | error → processing        (recompute)
processing → processing               (recompute restarts a stalled pass)
pending | processing → error          (scheduling failed)

Progress checkpoints while processing:

    10  normalizing
    35  aggregating
    70  building evidence
    85  writing snapshot
    100 done

Failure contract
----------------
- Any exception moves the run to ``error`` with ``"<Type>: <message>"``.
- Rows already written under a building snapshot version stay in place;
  readers keep seeing the previous sealed version.
- Narrative generation runs after the run is completed; its failures are
  logged and never change the run status or the snapshot.

Runs for the same dataset are serialized through the dataset lock
registry; runs for different datasets proceed independently.
"""

from __future__ import annotations

import logging
import math
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Protocol

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from analytics.contracts import MetricRow
from analytics.engine import AggregationEngine
from analytics.evidence import EvidenceTableBuilder
from analytics.records import PublisherRecord
from app.config import get_pipeline_settings
from app.errors import (
    ComputationError,
    InvalidRunTransitionError,
    NoResolvableRecordsError,
    PersistenceError,
    describe_error,
)
from app.logging_utils import log_event
from app.services.dataset_locks import DatasetLockRegistry, get_dataset_lock_registry
from app.services.narrative_service import NarrativeService, get_narrative_service
from app.services.record_normalizer import RecordNormalizer, get_record_normalizer
from app.services.snapshot_writer import SnapshotWriter, get_snapshot_writer
from db.models.dataset_run import DatasetRun, DatasetRunStatus
from db.repositories.dataset_run_repository import DatasetRunRepository, can_transition
from db.repositories.publisher_repository import PublisherRepository

logger = logging.getLogger(__name__)

STEP_QUEUED = "queued"
STEP_NORMALIZING = "normalizing"
STEP_AGGREGATING = "aggregating"
STEP_BUILDING_EVIDENCE = "building evidence"
STEP_WRITING_SNAPSHOT = "writing snapshot"
STEP_DONE = "done"

PROGRESS_CHECKPOINTS: dict[str, int] = {
    STEP_NORMALIZING: 10,
    STEP_AGGREGATING: 35,
    STEP_BUILDING_EVIDENCE: 70,
    STEP_WRITING_SNAPSHOT: 85,
    STEP_DONE: 100,
}

RawRow = Mapping[str, Any]


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------


class PipelineTaskExecutor(Protocol):
    def submit(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PipelineRunResult:
    """
    Structured output of one successful pipeline run.

    Attributes
    ----------
    dataset_id:
        Dataset run that was recomputed.
    version_id:
        Snapshot version now current for the dataset.
    calc_version:
        UTC ISO timestamp tagging this pass.
    record_count:
        Normalized publisher records the metrics were computed from.
    metric_count, table_count:
        Rows written under the new version.
    sections_ready:
        Narrative sections accepted for the new version.
    """

    dataset_id: uuid.UUID
    version_id: uuid.UUID
    calc_version: str
    record_count: int
    metric_count: int
    table_count: int
    sections_ready: list[int] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class RunOrchestrator:
    """
    Coordinates run creation, background execution, and status persistence.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session] | None = None,
        normalizer: RecordNormalizer | None = None,
        engine: AggregationEngine | None = None,
        evidence_builder: EvidenceTableBuilder | None = None,
        snapshot_writer: SnapshotWriter | None = None,
        narrative_service: NarrativeService | None = None,
        narrative_enabled: bool | None = None,
        lock_registry: DatasetLockRegistry | None = None,
        write_batch_size: int | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

        settings = get_pipeline_settings()
        self._normalizer = normalizer or get_record_normalizer()
        self._engine = engine or AggregationEngine()
        self._evidence_builder = evidence_builder or EvidenceTableBuilder()
        self._snapshot_writer = snapshot_writer or get_snapshot_writer()
        self._narrative_service = narrative_service or get_narrative_service()
        self._narrative_enabled = (
            settings.narrative_enabled if narrative_enabled is None else narrative_enabled
        )
        self._locks = lock_registry or get_dataset_lock_registry()
        self._write_batch_size = write_batch_size or settings.write_batch_size

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def trigger_ingestion(
        self,
        *,
        db: Session,
        executor: PipelineTaskExecutor,
        name: str,
        rows: Sequence[RawRow],
        field_mapping: Mapping[str, str] | None = None,
        version_label: str | None = None,
    ) -> DatasetRun:
        """
        Create a pending dataset run and schedule its first pipeline pass.

        Raises
        ------
        FieldMappingError
            If the rows cannot be mapped; no run is created.
        """
        self._normalizer.resolve_mapping(rows, explicit_mapping=field_mapping)
        repository = DatasetRunRepository(db)
        run = repository.create_run(name=name, version_label=version_label, row_count=len(rows))
        run.processing_step = STEP_QUEUED
        db.commit()

        self._submit(
            db=db,
            executor=executor,
            dataset_id=run.id,
            rows=list(rows),
            field_mapping=dict(field_mapping) if field_mapping else None,
        )
        return run

    def trigger_recompute(
        self,
        *,
        db: Session,
        executor: PipelineTaskExecutor,
        dataset_id: uuid.UUID,
        rows: Sequence[RawRow] | None = None,
        field_mapping: Mapping[str, str] | None = None,
    ) -> DatasetRun:
        """
        Schedule a full recompute for an existing dataset.

        Without *rows* the persisted publisher records are reused.

        Raises
        ------
        DatasetRunNotFoundError
            If the dataset does not exist.
        InvalidRunTransitionError
            If the dataset is still pending its first pass.
        FieldMappingError
            If supplied rows cannot be mapped.
        """
        repository = DatasetRunRepository(db)
        run = repository.require_run(dataset_id)
        # the session may hold a copy loaded before the last pass finished
        db.refresh(run)
        if run.status not in DatasetRunStatus.RECOMPUTABLE:
            raise InvalidRunTransitionError(
                dataset_id=dataset_id,
                current=run.status,
                target=DatasetRunStatus.PROCESSING,
            )
        if rows is not None:
            self._normalizer.resolve_mapping(rows, explicit_mapping=field_mapping)

        self._submit(
            db=db,
            executor=executor,
            dataset_id=dataset_id,
            rows=list(rows) if rows is not None else None,
            field_mapping=dict(field_mapping) if field_mapping else None,
        )
        return run

    def _submit(
        self,
        *,
        db: Session,
        executor: PipelineTaskExecutor,
        dataset_id: uuid.UUID,
        rows: list[RawRow] | None,
        field_mapping: dict[str, str] | None,
    ) -> None:
        try:
            executor.submit(self.run_pipeline, dataset_id, rows, field_mapping)
        except Exception:
            repository = DatasetRunRepository(db)
            # a completed run keeps serving its sealed snapshot
            if can_transition(repository.require_run(dataset_id).status, DatasetRunStatus.ERROR):
                repository.mark_failed(
                    dataset_id=dataset_id,
                    error_message="Failed to schedule pipeline run.",
                )
                db.commit()
            raise

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run_pipeline(
        self,
        dataset_id: uuid.UUID,
        rows: Sequence[RawRow] | None = None,
        field_mapping: Mapping[str, str] | None = None,
    ) -> PipelineRunResult | None:
        """
        Execute one full pass for *dataset_id*.

        Parameters
        ----------
        dataset_id:
            Dataset run to (re)compute.
        rows:
            Raw rows to normalize; ``None`` reuses the persisted records.
        field_mapping:
            Optional explicit ``source column -> canonical field`` mapping.

        Returns
        -------
        PipelineRunResult | None
            ``None`` when the run ended in ``error``; the failure is
            recorded on the dataset run instead of being raised.
        """
        with self._locks.hold(dataset_id):
            with self._session_factory() as db:
                try:
                    return self._execute(
                        db=db,
                        dataset_id=dataset_id,
                        rows=rows,
                        field_mapping=field_mapping,
                    )
                except Exception as exc:
                    self._mark_run_failed(db=db, dataset_id=dataset_id, exc=exc)
                    return None

    def _execute(
        self,
        *,
        db: Session,
        dataset_id: uuid.UUID,
        rows: Sequence[RawRow] | None,
        field_mapping: Mapping[str, str] | None,
    ) -> PipelineRunResult:
        run_start = time.monotonic()
        runs = DatasetRunRepository(db)

        runs.mark_processing(dataset_id=dataset_id, step=STEP_NORMALIZING)
        runs.update_progress(
            dataset_id=dataset_id,
            progress=PROGRESS_CHECKPOINTS[STEP_NORMALIZING],
            step=STEP_NORMALIZING,
        )
        db.commit()
        log_event(
            logger,
            logging.INFO,
            "run_started",
            dataset_id=dataset_id,
            source="rows" if rows is not None else "stored_records",
        )

        # Step 1 – normalize (or reload the stored record set)
        records = self._load_records(db=db, dataset_id=dataset_id, rows=rows, field_mapping=field_mapping)

        # Step 2 – aggregate
        self._checkpoint(db, dataset_id, STEP_AGGREGATING)
        aggregation = self._engine.run(records)
        metric_rows = aggregation.metric_rows()
        _ensure_finite(metric_rows)

        # Step 3 – evidence tables
        self._checkpoint(db, dataset_id, STEP_BUILDING_EVIDENCE)
        tables = self._evidence_builder.build(aggregation)

        # Step 4 – snapshot under a fresh version, then pointer swap
        self._checkpoint(db, dataset_id, STEP_WRITING_SNAPSHOT)
        calc_version = datetime.now(timezone.utc).isoformat()
        written = self._snapshot_writer.write(
            db=db,
            dataset_id=dataset_id,
            calc_version=calc_version,
            metrics=metric_rows,
            tables=tables,
        )

        # Step 5 – complete
        runs.mark_completed(dataset_id=dataset_id, step=STEP_DONE)
        db.commit()
        log_event(
            logger,
            logging.INFO,
            "run_completed",
            dataset_id=dataset_id,
            version_id=written.version_id,
            record_count=len(records),
            metric_count=written.metric_count,
            table_count=written.table_count,
            elapsed_seconds=round(time.monotonic() - run_start, 3),
        )

        sections = self._generate_narrative(db=db, dataset_id=dataset_id, version_id=written.version_id)
        return PipelineRunResult(
            dataset_id=dataset_id,
            version_id=written.version_id,
            calc_version=calc_version,
            record_count=len(records),
            metric_count=written.metric_count,
            table_count=written.table_count,
            sections_ready=sections,
        )

    # ------------------------------------------------------------------
    # Internal: steps
    # ------------------------------------------------------------------

    def _load_records(
        self,
        *,
        db: Session,
        dataset_id: uuid.UUID,
        rows: Sequence[RawRow] | None,
        field_mapping: Mapping[str, str] | None,
    ) -> tuple[PublisherRecord, ...]:
        publishers = PublisherRepository(db)
        if rows is None:
            stored = publishers.load_records(dataset_id)
            if not stored:
                raise NoResolvableRecordsError(rows_received=0, rows_dropped=0)
            return tuple(stored)

        normalized = self._normalizer.normalize(rows, explicit_mapping=field_mapping)
        try:
            publishers.replace_records(
                dataset_id=dataset_id,
                records=normalized.records,
                batch_size=self._write_batch_size,
            )
            DatasetRunRepository(db).record_normalization(
                dataset_id=dataset_id,
                field_mapping=normalized.summary.mapping,
                summary=normalized.summary.to_dict(),
                row_count=normalized.summary.rows_received,
                record_count=len(normalized.records),
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceError(
                f"Failed to store publisher records for dataset {dataset_id}: {exc}"
            ) from exc
        return normalized.records

    def _checkpoint(self, db: Session, dataset_id: uuid.UUID, step: str) -> None:
        DatasetRunRepository(db).update_progress(
            dataset_id=dataset_id,
            progress=PROGRESS_CHECKPOINTS[step],
            step=step,
        )
        db.commit()
        logger.debug("Dataset %s reached step %r", dataset_id, step)

    def _generate_narrative(
        self,
        *,
        db: Session,
        dataset_id: uuid.UUID,
        version_id: uuid.UUID,
    ) -> list[int]:
        if not self._narrative_enabled:
            return []
        try:
            result = self._narrative_service.generate(db=db, dataset_id=dataset_id, version_id=version_id)
        except Exception as exc:
            # the run is already completed; narrative failures stay out of its lifecycle
            db.rollback()
            log_event(
                logger,
                logging.WARNING,
                "narrative_failed",
                dataset_id=dataset_id,
                version_id=version_id,
                error=describe_error(exc),
            )
            return []
        return list(result.accepted)

    def _mark_run_failed(self, *, db: Session, dataset_id: uuid.UUID, exc: Exception) -> None:
        error_message = describe_error(exc)
        log_event(
            logger,
            logging.ERROR,
            "run_failed",
            dataset_id=dataset_id,
            error=error_message,
        )
        logger.exception("Pipeline run failed dataset_id=%s", dataset_id)
        try:
            db.rollback()
            DatasetRunRepository(db).mark_failed(dataset_id=dataset_id, error_message=error_message)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist failed run state dataset_id=%s", dataset_id)


def _ensure_finite(rows: Sequence[MetricRow]) -> None:
    invalid = [row.metric_key for row in rows if not math.isfinite(row.value_num)]
    if invalid:
        raise ComputationError(f"Non-finite metric values: {', '.join(invalid)}")


@lru_cache(maxsize=1)
def get_run_orchestrator() -> RunOrchestrator:
    return RunOrchestrator()
