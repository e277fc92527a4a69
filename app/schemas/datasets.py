"""
Schemas for dataset ingestion, recompute, and snapshot read endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class DatasetCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    version_label: str | None = Field(default=None, max_length=100)
    rows: list[dict[str, Any]] = Field(..., description="Raw rows: source column → raw value")
    field_mapping: dict[str, str] | None = Field(
        default=None,
        description="Optional source column → canonical field mapping",
    )


class RecomputeRequest(BaseModel):
    rows: list[dict[str, Any]] | None = Field(
        default=None,
        description="Replacement rows; omit to recompute from stored publisher records",
    )
    field_mapping: dict[str, str] | None = None


class DatasetRunAcceptedResponse(BaseModel):
    dataset_id: UUID
    status: str
    processing_step: str | None = None
    created_at: datetime


class DatasetRunStatusResponse(BaseModel):
    dataset_id: UUID
    name: str
    version_label: str | None = None
    status: str
    processing_progress: int = Field(..., ge=0, le=100)
    processing_step: str | None = None
    sections_ready: list[int] = Field(default_factory=list)
    row_count: int | None = None
    record_count: int | None = None
    field_mapping: dict[str, Any] | None = None
    normalization_summary: dict[str, Any] | None = None
    error_message: str | None = None
    current_version_id: UUID | None = None
    created_at: datetime
    updated_at: datetime
    processing_started_at: datetime | None = None
    processing_completed_at: datetime | None = None


class DatasetRunListResponse(BaseModel):
    datasets: list[DatasetRunStatusResponse] = Field(default_factory=list)


class MetricResponse(BaseModel):
    dataset_id: UUID
    metric_key: str
    value_num: float
    module_id: int
    calc_version: str


class MetricListResponse(BaseModel):
    dataset_id: UUID
    version_id: UUID | None = None
    metrics: list[MetricResponse] = Field(default_factory=list)


class EvidenceTableResponse(BaseModel):
    dataset_id: UUID
    table_key: str
    module_id: int
    row_count: int = Field(..., ge=0)
    data_json: list[dict[str, Any]] = Field(default_factory=list)
    calc_version: str


class EvidenceTableListResponse(BaseModel):
    dataset_id: UUID
    version_id: UUID | None = None
    tables: list[EvidenceTableResponse] = Field(default_factory=list)


class ReportSectionResponse(BaseModel):
    section_id: int
    title: str
    conclusion: str
    created_at: datetime


class ReportSectionListResponse(BaseModel):
    dataset_id: UUID
    version_id: UUID | None = None
    sections: list[ReportSectionResponse] = Field(default_factory=list)
