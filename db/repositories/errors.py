"""
Repository-layer exceptions.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for repository failures."""


class DatasetRunNotFoundError(RepositoryError, LookupError):
    """Raised when a referenced dataset run does not exist."""

    def __init__(self, dataset_id: object) -> None:
        super().__init__(f"Dataset run {dataset_id} not found.")
        self.dataset_id = dataset_id
