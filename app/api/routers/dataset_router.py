"""
app/api/routers/dataset_router.py

Dataset ingestion, recompute, and snapshot read endpoints.

Writes are accepted with 202 and processed as background pipeline runs.
Reads only ever return rows of the dataset's current sealed version.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_csv_upload, get_task_executor
from app.errors import InputError, InvalidRunTransitionError
from app.schemas.datasets import (
    DatasetCreateRequest,
    DatasetRunAcceptedResponse,
    DatasetRunListResponse,
    DatasetRunStatusResponse,
    EvidenceTableListResponse,
    EvidenceTableResponse,
    MetricListResponse,
    MetricResponse,
    RecomputeRequest,
    ReportSectionListResponse,
    ReportSectionResponse,
)
from app.services.csv_reader import read_csv_rows
from app.services.run_orchestrator import PipelineTaskExecutor, RunOrchestrator, get_run_orchestrator
from app.validators.mapping_validator import FieldMappingError
from db.models.dataset_run import DatasetRun
from db.models.evidence_table import EvidenceTableSnapshot
from db.repositories.dataset_run_repository import DatasetRunRepository
from db.repositories.errors import DatasetRunNotFoundError
from db.repositories.section_repository import SectionRepository
from db.repositories.snapshot_repository import SnapshotRepository
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["datasets"])


# ---------------------------------------------------------------------------
# Write endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/datasets",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=DatasetRunAcceptedResponse,
)
def create_dataset(
    body: DatasetCreateRequest,
    db: Session = Depends(get_db),
    executor: PipelineTaskExecutor = Depends(get_task_executor),
    orchestrator: RunOrchestrator = Depends(get_run_orchestrator),
) -> DatasetRunAcceptedResponse:
    try:
        run = orchestrator.trigger_ingestion(
            db=db,
            executor=executor,
            name=body.name,
            rows=body.rows,
            field_mapping=body.field_mapping,
            version_label=body.version_label,
        )
    except InputError as exc:
        raise _input_error(exc) from exc
    return _accepted(run)


@router.post(
    "/datasets/upload",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=DatasetRunAcceptedResponse,
)
def upload_dataset(
    file: UploadFile = Depends(get_csv_upload),
    name: str | None = Query(default=None, description="Dataset name; defaults to the file name"),
    version_label: str | None = Query(default=None),
    db: Session = Depends(get_db),
    executor: PipelineTaskExecutor = Depends(get_task_executor),
    orchestrator: RunOrchestrator = Depends(get_run_orchestrator),
) -> DatasetRunAcceptedResponse:
    try:
        rows = read_csv_rows(file.file)
        run = orchestrator.trigger_ingestion(
            db=db,
            executor=executor,
            name=name or file.filename or "upload.csv",
            rows=rows,
            version_label=version_label,
        )
    except InputError as exc:
        raise _input_error(exc) from exc
    finally:
        file.file.close()
    return _accepted(run)


@router.post(
    "/datasets/{dataset_id}/recompute",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=DatasetRunAcceptedResponse,
)
def recompute_dataset(
    dataset_id: UUID,
    body: RecomputeRequest | None = None,
    db: Session = Depends(get_db),
    executor: PipelineTaskExecutor = Depends(get_task_executor),
    orchestrator: RunOrchestrator = Depends(get_run_orchestrator),
) -> DatasetRunAcceptedResponse:
    request = body or RecomputeRequest()
    try:
        run = orchestrator.trigger_recompute(
            db=db,
            executor=executor,
            dataset_id=dataset_id,
            rows=request.rows,
            field_mapping=request.field_mapping,
        )
    except DatasetRunNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidRunTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except InputError as exc:
        raise _input_error(exc) from exc
    return _accepted(run)


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get("/datasets", response_model=DatasetRunListResponse)
def list_datasets(
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> DatasetRunListResponse:
    runs = DatasetRunRepository(db).list_runs(limit=limit, status=status_filter)
    return DatasetRunListResponse(datasets=[_status(run) for run in runs])


@router.get("/datasets/{dataset_id}", response_model=DatasetRunStatusResponse)
def get_dataset(dataset_id: UUID, db: Session = Depends(get_db)) -> DatasetRunStatusResponse:
    return _status(_require_run(db, dataset_id))


@router.get("/datasets/{dataset_id}/metrics", response_model=MetricListResponse)
def get_metrics(dataset_id: UUID, db: Session = Depends(get_db)) -> MetricListResponse:
    run = _require_run(db, dataset_id)
    if run.current_version_id is None:
        return MetricListResponse(dataset_id=dataset_id)

    rows = SnapshotRepository(db).list_metrics(run.current_version_id)
    return MetricListResponse(
        dataset_id=dataset_id,
        version_id=run.current_version_id,
        metrics=[
            MetricResponse(
                dataset_id=row.dataset_id,
                metric_key=row.metric_key,
                value_num=row.value_num,
                module_id=row.module_id,
                calc_version=row.calc_version,
            )
            for row in rows
        ],
    )


@router.get("/datasets/{dataset_id}/evidence", response_model=EvidenceTableListResponse)
def get_evidence_tables(dataset_id: UUID, db: Session = Depends(get_db)) -> EvidenceTableListResponse:
    run = _require_run(db, dataset_id)
    if run.current_version_id is None:
        return EvidenceTableListResponse(dataset_id=dataset_id)

    tables = SnapshotRepository(db).list_evidence(run.current_version_id)
    return EvidenceTableListResponse(
        dataset_id=dataset_id,
        version_id=run.current_version_id,
        tables=[_evidence(table) for table in tables],
    )


@router.get("/datasets/{dataset_id}/evidence/{table_key}", response_model=EvidenceTableResponse)
def get_evidence_table(
    dataset_id: UUID,
    table_key: str,
    db: Session = Depends(get_db),
) -> EvidenceTableResponse:
    run = _require_run(db, dataset_id)
    table = None
    if run.current_version_id is not None:
        table = SnapshotRepository(db).get_evidence(run.current_version_id, table_key)
    if table is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Evidence table {table_key!r} not found for dataset {dataset_id}.",
        )
    return _evidence(table)


@router.get("/datasets/{dataset_id}/sections", response_model=ReportSectionListResponse)
def get_sections(dataset_id: UUID, db: Session = Depends(get_db)) -> ReportSectionListResponse:
    run = _require_run(db, dataset_id)
    if run.current_version_id is None:
        return ReportSectionListResponse(dataset_id=dataset_id)

    sections = SectionRepository(db).list_sections(run.current_version_id)
    return ReportSectionListResponse(
        dataset_id=dataset_id,
        version_id=run.current_version_id,
        sections=[
            ReportSectionResponse(
                section_id=section.section_id,
                title=section.title,
                conclusion=section.conclusion,
                created_at=section.created_at,
            )
            for section in sections
        ],
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_run(db: Session, dataset_id: UUID) -> DatasetRun:
    run = DatasetRunRepository(db).get_run(dataset_id)
    if run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Dataset {dataset_id} not found.",
        )
    return run


def _input_error(exc: InputError) -> HTTPException:
    if isinstance(exc, FieldMappingError):
        detail = exc.to_dict()
    else:
        detail = {"message": str(exc), "errors": []}
    logger.info("Rejected dataset input: %s", exc)
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


def _accepted(run: DatasetRun) -> DatasetRunAcceptedResponse:
    return DatasetRunAcceptedResponse(
        dataset_id=run.id,
        status=run.status,
        processing_step=run.processing_step,
        created_at=run.created_at,
    )


def _status(run: DatasetRun) -> DatasetRunStatusResponse:
    return DatasetRunStatusResponse(
        dataset_id=run.id,
        name=run.name,
        version_label=run.version_label,
        status=run.status,
        processing_progress=run.processing_progress,
        processing_step=run.processing_step,
        sections_ready=list(run.sections_ready or []),
        row_count=run.row_count,
        record_count=run.record_count,
        field_mapping=run.field_mapping,
        normalization_summary=run.normalization_summary,
        error_message=run.error_message,
        current_version_id=run.current_version_id,
        created_at=run.created_at,
        updated_at=run.updated_at,
        processing_started_at=run.processing_started_at,
        processing_completed_at=run.processing_completed_at,
    )


def _evidence(table: EvidenceTableSnapshot) -> EvidenceTableResponse:
    return EvidenceTableResponse(
        dataset_id=table.dataset_id,
        table_key=table.table_key,
        module_id=table.module_id,
        row_count=table.row_count,
        data_json=table.data_json,
        calc_version=table.calc_version,
    )
