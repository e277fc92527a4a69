"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.dataset_run import DatasetRun, DatasetRunStatus
from db.models.evidence_table import EvidenceTableSnapshot
from db.models.metric_snapshot import MetricSnapshot
from db.models.publisher_record import Publisher
from db.models.report_section import ReportSection
from db.models.snapshot_version import SnapshotVersion, SnapshotVersionStatus

__all__ = [
    "DatasetRun",
    "DatasetRunStatus",
    "EvidenceTableSnapshot",
    "MetricSnapshot",
    "Publisher",
    "ReportSection",
    "SnapshotVersion",
    "SnapshotVersionStatus",
]
