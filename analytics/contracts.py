"""
analytics/contracts.py

Closed metric/evidence key sets and the row shapes handed to persistence.

Fixed metric keys live in :class:`MetricKey` so they can be checked
statically.  Mix-bucket shares form an open family (``{bucket}_share``)
and are carried separately as a ``bucket -> share`` mapping until they are
flattened into :class:`MetricRow` objects for storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any


class ModuleId(IntEnum):
    """Dashboard section that owns a metric or evidence table."""

    OVERVIEW = 0
    ACTIVATION = 1
    CONCENTRATION = 2
    MIX_HEALTH = 3
    EFFICIENCY = 4
    APPROVAL = 5
    TIERING = 6
    TIMELINE = 8


class MetricKey(str, Enum):
    TOTAL_PUBLISHERS = "total_publishers"
    ACTIVE_PUBLISHERS = "active_publishers"
    ACTIVE_RATIO = "active_ratio"
    TOTAL_GMV = "total_gmv"
    GMV_PER_ACTIVE = "gmv_per_active"
    TOP1_SHARE = "top1_share"
    TOP3_SHARE = "top3_share"
    TOP10_SHARE = "top10_share"
    PUBLISHERS_TO_50PCT = "publishers_to_50pct"
    APPROVAL_RATE = "approval_rate"
    TOTAL_APPROVED_GMV = "total_approved_gmv"
    TOTAL_PENDING_GMV = "total_pending_gmv"
    TOTAL_DECLINED_GMV = "total_declined_gmv"

    @property
    def module_id(self) -> ModuleId:
        return _METRIC_MODULES[self]


_METRIC_MODULES: dict[MetricKey, ModuleId] = {
    MetricKey.TOTAL_PUBLISHERS: ModuleId.OVERVIEW,
    MetricKey.ACTIVE_PUBLISHERS: ModuleId.ACTIVATION,
    MetricKey.ACTIVE_RATIO: ModuleId.ACTIVATION,
    MetricKey.TOTAL_GMV: ModuleId.OVERVIEW,
    MetricKey.GMV_PER_ACTIVE: ModuleId.OVERVIEW,
    MetricKey.TOP1_SHARE: ModuleId.CONCENTRATION,
    MetricKey.TOP3_SHARE: ModuleId.CONCENTRATION,
    MetricKey.TOP10_SHARE: ModuleId.CONCENTRATION,
    MetricKey.PUBLISHERS_TO_50PCT: ModuleId.CONCENTRATION,
    MetricKey.APPROVAL_RATE: ModuleId.APPROVAL,
    MetricKey.TOTAL_APPROVED_GMV: ModuleId.APPROVAL,
    MetricKey.TOTAL_PENDING_GMV: ModuleId.APPROVAL,
    MetricKey.TOTAL_DECLINED_GMV: ModuleId.APPROVAL,
}

FIXED_METRIC_KEYS: frozenset[str] = frozenset(key.value for key in MetricKey)


class EvidenceTableKey(str, Enum):
    ACTIVATION_SUMMARY = "activation_summary"
    ACTIVATION_PUBLISHERS = "activation_publishers"
    TOPN_TABLE = "topn_table"
    PARETO_POINTS = "pareto_points"
    MIX_HEALTH_TABLE = "mix_health_table"
    EFFICIENCY_SCATTER = "efficiency_scatter"
    APPROVAL_WATERFALL = "approval_waterfall"
    APPROVAL_TABLE = "approval_table"
    TIER_SUMMARY = "tier_summary"
    TIMELINE_TASKS = "timeline_tasks"


def share_metric_key(bucket: str) -> str:
    """Metric key under which a mix bucket's GMV share is persisted."""
    return f"{bucket}_share"


@dataclass(frozen=True)
class MetricRow:
    """One scalar metric ready to be written as a snapshot row."""

    metric_key: str
    value_num: float
    module_id: int


@dataclass(frozen=True)
class EvidenceTableData:
    """One ordered, display-ready row set ready to be written as evidence."""

    table_key: str
    module_id: int
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)
