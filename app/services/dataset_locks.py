"""
Per-dataset single-writer locks.

Recomputes for the same dataset must not interleave their snapshot writes;
runs for different datasets proceed in parallel.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache


class DatasetLockRegistry:
    """
    Hands out one re-entrant lock per dataset id.

    Entries are reference counted and dropped once no caller holds or
    waits on them, so the registry does not grow with the dataset count.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locks: dict[uuid.UUID, threading.RLock] = {}
        self._users: dict[uuid.UUID, int] = {}

    @contextmanager
    def hold(self, dataset_id: uuid.UUID) -> Iterator[None]:
        """
        Block until this thread is the only writer for *dataset_id*.
        """

        with self._lock:
            dataset_lock = self._locks.setdefault(dataset_id, threading.RLock())
            self._users[dataset_id] = self._users.get(dataset_id, 0) + 1

        dataset_lock.acquire()
        try:
            yield
        finally:
            dataset_lock.release()
            with self._lock:
                remaining = self._users[dataset_id] - 1
                if remaining:
                    self._users[dataset_id] = remaining
                else:
                    del self._users[dataset_id]
                    del self._locks[dataset_id]

    def active_datasets(self) -> set[uuid.UUID]:
        with self._lock:
            return set(self._locks)


@lru_cache(maxsize=1)
def get_dataset_lock_registry() -> DatasetLockRegistry:
    """
    Process-wide registry shared by every orchestrator instance.
    """

    return DatasetLockRegistry()
