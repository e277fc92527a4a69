"""
analytics/activation.py

Activation module: how much of the publisher base is producing revenue.

Formulas
--------
total_publishers   = |records|
active_publishers  = |records with total_revenue > 0|
active_ratio       = active_publishers / total_publishers
total_gmv          = sum(total_revenue)
gmv_per_active     = total_gmv / active_publishers

Zero denominators yield 0.0.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from analytics.base import BaseAnalyticsModule
from analytics.contracts import ModuleId
from analytics.ranking import safe_ratio
from analytics.records import PublisherRecord


@dataclass(frozen=True)
class ActivationResult:
    total_publishers: int
    active_publishers: int
    active_ratio: float
    total_gmv: float
    gmv_per_active: float


class ActivationModule(BaseAnalyticsModule[ActivationResult]):
    module_id = ModuleId.ACTIVATION

    def calculate(self, records: Sequence[PublisherRecord]) -> ActivationResult:
        total = len(records)
        active = sum(1 for record in records if record.is_active)
        total_gmv = _total_gmv(records)

        return ActivationResult(
            total_publishers=total,
            active_publishers=active,
            active_ratio=safe_ratio(active, total),
            total_gmv=total_gmv,
            gmv_per_active=safe_ratio(total_gmv, active),
        )


def _total_gmv(records: Sequence[PublisherRecord]) -> float:
    return sum((record.total_revenue for record in records), 0.0)
