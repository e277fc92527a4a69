"""
app/schemas package marker.
"""

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
from app.schemas.health import HealthResponse

__all__ = [
    "DatasetCreateRequest",
    "DatasetRunAcceptedResponse",
    "DatasetRunListResponse",
    "DatasetRunStatusResponse",
    "EvidenceTableListResponse",
    "EvidenceTableResponse",
    "HealthResponse",
    "MetricListResponse",
    "MetricResponse",
    "RecomputeRequest",
    "ReportSectionListResponse",
    "ReportSectionResponse",
]
