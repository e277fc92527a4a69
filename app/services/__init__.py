"""
app/services package marker.
"""

from app.services.dataset_locks import DatasetLockRegistry, get_dataset_lock_registry
from app.services.narrative_service import (
    NarrativeService,
    NarrativeWriter,
    SectionDraft,
    TemplateNarrativeWriter,
    get_narrative_service,
)
from app.services.record_normalizer import RecordNormalizer, get_record_normalizer
from app.services.run_orchestrator import RunOrchestrator, get_run_orchestrator
from app.services.snapshot_writer import SnapshotWriter, get_snapshot_writer

__all__ = [
    "DatasetLockRegistry",
    "get_dataset_lock_registry",
    "NarrativeService",
    "NarrativeWriter",
    "SectionDraft",
    "TemplateNarrativeWriter",
    "get_narrative_service",
    "RecordNormalizer",
    "get_record_normalizer",
    "RunOrchestrator",
    "get_run_orchestrator",
    "SnapshotWriter",
    "get_snapshot_writer",
]
