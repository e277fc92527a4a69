"""
analytics/efficiency.py

Efficiency module: unit economics of each active publisher.

Formulas
--------
CPA = total_commission / orders
AOV = total_revenue / orders
ROI = total_revenue / total_commission

Division-by-zero cases return 0.0.  Values are kept un-rounded here;
rounding to two decimals happens only when evidence rows are built.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from analytics.base import BaseAnalyticsModule
from analytics.contracts import ModuleId
from analytics.ranking import rank_by_revenue, safe_ratio
from analytics.records import PublisherRecord


@dataclass(frozen=True)
class PublisherEfficiency:
    record: PublisherRecord
    cpa: float
    aov: float
    roi: float


@dataclass(frozen=True)
class EfficiencyResult:
    publishers: tuple[PublisherEfficiency, ...]


class EfficiencyModule(BaseAnalyticsModule[EfficiencyResult]):
    """Per-publisher efficiency points, ordered like the revenue ranking."""

    module_id = ModuleId.EFFICIENCY

    def calculate(self, records: Sequence[PublisherRecord]) -> EfficiencyResult:
        ranked = rank_by_revenue(r for r in records if r.is_active)
        return EfficiencyResult(publishers=tuple(_efficiency(r) for r in ranked))


def _efficiency(record: PublisherRecord) -> PublisherEfficiency:
    return PublisherEfficiency(
        record=record,
        cpa=_cpa(record.total_commission, record.orders),
        aov=_aov(record.total_revenue, record.orders),
        roi=_roi(record.total_revenue, record.total_commission),
    )


def _cpa(commission: float, orders: float) -> float:
    return safe_ratio(commission, orders)


def _aov(revenue: float, orders: float) -> float:
    return safe_ratio(revenue, orders)


def _roi(revenue: float, commission: float) -> float:
    return safe_ratio(revenue, commission)
