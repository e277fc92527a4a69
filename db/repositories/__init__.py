"""
Repository layer exports.
"""

from db.repositories.dataset_run_repository import DatasetRunRepository
from db.repositories.errors import DatasetRunNotFoundError, RepositoryError
from db.repositories.publisher_repository import PublisherRepository
from db.repositories.section_repository import SectionRepository
from db.repositories.snapshot_repository import SnapshotRepository

__all__ = [
    "DatasetRunRepository",
    "PublisherRepository",
    "SectionRepository",
    "SnapshotRepository",
    "RepositoryError",
    "DatasetRunNotFoundError",
]
