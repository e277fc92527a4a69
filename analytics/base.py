"""
analytics/base.py

Abstract base class for all aggregation modules.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Generic, Sequence, TypeVar

from analytics.contracts import ModuleId
from analytics.records import PublisherRecord

ResultT = TypeVar("ResultT")


class BaseAnalyticsModule(ABC, Generic[ResultT]):
    """
    Contract for aggregation module implementations.

    Subclasses receive the full normalized record sequence and return a
    frozen result object.  No I/O, no logging, and no side effects are
    permitted inside :meth:`calculate`; each module re-derives whatever it
    needs (active subset, totals, rankings) from the records itself.
    """

    module_id: ClassVar[ModuleId]

    @abstractmethod
    def calculate(self, records: Sequence[PublisherRecord]) -> ResultT:
        """
        Compute this module's result from *records*.

        Parameters
        ----------
        records:
            Canonical publisher records in normalized order.
        """
