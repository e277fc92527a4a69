"""
analytics/evidence.py

Builds the display-ready evidence tables from one aggregation pass.

Rows are plain JSON-serializable dicts; row order is part of the contract
and is fully determined by the revenue ranking comparator.
"""

from __future__ import annotations

import math
from typing import Any, Sequence

from analytics.approval import publisher_rates
from analytics.contracts import EvidenceTableData, EvidenceTableKey, ModuleId
from analytics.engine import AggregationResult
from analytics.mix_health import normalize_bucket
from analytics.ranking import share_of_total
from analytics.records import PublisherRecord

TOPN_LIMIT = 20
PARETO_RESOLUTION = 20
ACTIVATION_PUBLISHER_LIMIT = 100


def format_thousands(value: float, decimals: int = 1) -> str:
    """Render a GMV amount as ``$<value/1000>K``."""
    return f"${value / 1000:.{decimals}f}K"


def format_percent(ratio: float) -> str:
    return f"{ratio * 100:.1f}%"


def pareto_pace(active_count: int) -> int:
    """Sampling step that caps the Pareto curve at ~20 points plus the tail."""
    return max(1, math.ceil(active_count / PARETO_RESOLUTION))


class EvidenceTableBuilder:
    """Derives every evidence table from an :class:`AggregationResult`."""

    def build(self, result: AggregationResult) -> list[EvidenceTableData]:
        return [
            self._table(EvidenceTableKey.ACTIVATION_SUMMARY, ModuleId.ACTIVATION, self.activation_summary(result)),
            self._table(EvidenceTableKey.ACTIVATION_PUBLISHERS, ModuleId.ACTIVATION, self.activation_publishers(result)),
            self._table(EvidenceTableKey.TOPN_TABLE, ModuleId.CONCENTRATION, self.topn_rows(result)),
            self._table(EvidenceTableKey.PARETO_POINTS, ModuleId.CONCENTRATION, self.pareto_points(result)),
            self._table(EvidenceTableKey.MIX_HEALTH_TABLE, ModuleId.MIX_HEALTH, self.mix_rows(result)),
            self._table(EvidenceTableKey.EFFICIENCY_SCATTER, ModuleId.EFFICIENCY, self.efficiency_rows(result)),
            self._table(EvidenceTableKey.APPROVAL_WATERFALL, ModuleId.APPROVAL, self.approval_waterfall(result)),
            self._table(EvidenceTableKey.APPROVAL_TABLE, ModuleId.APPROVAL, self.approval_rows(result)),
            self._table(EvidenceTableKey.TIER_SUMMARY, ModuleId.TIERING, self.tier_rows(result)),
            self._table(EvidenceTableKey.TIMELINE_TASKS, ModuleId.TIMELINE, self.timeline_rows(result)),
        ]

    @staticmethod
    def _table(
        key: EvidenceTableKey,
        module_id: ModuleId,
        rows: list[dict[str, Any]],
    ) -> EvidenceTableData:
        return EvidenceTableData(table_key=key.value, module_id=int(module_id), rows=rows)

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activation_summary(self, result: AggregationResult) -> list[dict[str, Any]]:
        activation = result.activation
        return [
            {"label": "Total Publishers", "value": activation.total_publishers},
            {"label": "Active Publishers", "value": activation.active_publishers},
            {"label": "Active Ratio", "value": format_percent(activation.active_ratio)},
            {"label": "GMV per Active", "value": f"${activation.gmv_per_active:.0f}"},
        ]

    def activation_publishers(self, result: AggregationResult) -> list[dict[str, Any]]:
        rows = []
        for point in result.efficiency.publishers[:ACTIVATION_PUBLISHER_LIMIT]:
            record = point.record
            rows.append(
                {
                    "name": record.display_name,
                    "type": record.publisher_type,
                    "gmv": record.total_revenue,
                    "cpa": point.cpa,
                    "approval_rate": publisher_rates(record).approval_rate,
                    "status": "Active",
                }
            )
        return rows

    # ------------------------------------------------------------------
    # Concentration
    # ------------------------------------------------------------------

    def topn_rows(self, result: AggregationResult) -> list[dict[str, Any]]:
        """First :data:`TOPN_LIMIT` ranked active publishers with cumulative share."""
        concentration = result.concentration
        share_base = concentration.share_base
        rows = []
        ranked = concentration.ranked_active[:TOPN_LIMIT]
        for index, record in enumerate(ranked):
            cumulative = concentration.cumulative_gmv[index]
            rows.append(
                {
                    "rank": index + 1,
                    "name": record.display_name,
                    "gmv": format_thousands(record.total_revenue),
                    "pct": format_percent(share_of_total(record.total_revenue, share_base)),
                    "cumPct": format_percent(share_of_total(cumulative, share_base)),
                }
            )
        return rows

    def pareto_points(self, result: AggregationResult) -> list[dict[str, Any]]:
        """Fixed-resolution sample of the cumulative concentration curve."""
        concentration = result.concentration
        count = len(concentration.ranked_active)
        if count == 0:
            return []

        pace = pareto_pace(count)
        points = []
        for index, cumulative in enumerate(concentration.cumulative_gmv):
            if index % pace == 0 or index == count - 1:
                points.append(
                    {
                        "pubPct": f"{(index + 1) / count * 100:.1f}",
                        "gmvPct": f"{share_of_total(cumulative, concentration.share_base) * 100:.1f}",
                    }
                )
        return points

    # ------------------------------------------------------------------
    # Mix, efficiency, approval, tiering, timeline
    # ------------------------------------------------------------------

    def mix_rows(self, result: AggregationResult) -> list[dict[str, Any]]:
        return [
            {
                "type": bucket.bucket,
                "count": bucket.count,
                "gmv": bucket.gmv,
                "count_share": format_percent(bucket.count_share),
                "gmv_share": format_percent(bucket.gmv_share),
            }
            for bucket in result.mix_health.buckets
        ]

    def efficiency_rows(self, result: AggregationResult) -> list[dict[str, Any]]:
        return [
            {
                "name": point.record.display_name,
                "type": normalize_bucket(point.record.publisher_type),
                "cpa": round(point.cpa, 2),
                "aov": round(point.aov, 2),
                "roi": round(point.roi, 2),
                "gmv": point.record.total_revenue,
            }
            for point in result.efficiency.publishers
        ]

    def approval_waterfall(self, result: AggregationResult) -> list[dict[str, Any]]:
        approval = result.approval
        steps = (
            ("Total GMV", approval.total_gmv),
            ("Approved", approval.total_approved),
            ("Pending", approval.total_pending),
            ("Declined", approval.total_declined),
        )
        return [
            {"name": name, "value": value, "label": format_thousands(value, decimals=0)}
            for name, value in steps
        ]

    def approval_rows(self, result: AggregationResult) -> list[dict[str, Any]]:
        """Per active publisher approval detail, highest decline rate first."""
        ranked = result.concentration.ranked_active
        rates = [publisher_rates(record) for record in ranked]
        # ties keep revenue-ranking order
        order = sorted(range(len(rates)), key=lambda i: (-rates[i].decline_rate, i))
        rows = []
        for i in order:
            record = rates[i].record
            rows.append(
                {
                    "publisher_name": record.display_name,
                    "total_revenue": record.total_revenue,
                    "approved_revenue": record.approved_revenue,
                    "pending_revenue": record.pending_revenue,
                    "declined_revenue": record.declined_revenue,
                    "approval_rate": rates[i].approval_rate,
                    "decline_rate": rates[i].decline_rate,
                }
            )
        return rows

    def tier_rows(self, result: AggregationResult) -> list[dict[str, Any]]:
        return [
            {
                "tier": tier.tier,
                "count": tier.count,
                "gmv": tier.gmv,
                "gmv_share": tier.gmv_share,
                "top_publishers": _names(tier.top_members),
            }
            for tier in result.tiering.tiers
        ]

    def timeline_rows(self, result: AggregationResult) -> list[dict[str, Any]]:
        return [
            {
                "name": task.name,
                "month_start": task.month_start,
                "duration": task.duration,
                "priority": task.priority,
            }
            for task in result.risk_tasks
        ]


def _names(records: Sequence[PublisherRecord]) -> list[str]:
    return [record.display_name for record in records]
