"""
analytics/engine.py

Runs the six aggregation modules over one normalized record set and
flattens their scalar outputs into metric rows.

Every module receives the same record sequence and derives what it needs
on its own; no module consumes another module's result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from analytics.activation import ActivationModule, ActivationResult
from analytics.approval import ApprovalModule, ApprovalResult
from analytics.concentration import ConcentrationModule, ConcentrationResult
from analytics.contracts import (
    FIXED_METRIC_KEYS,
    MetricKey,
    MetricRow,
    ModuleId,
    share_metric_key,
)
from analytics.efficiency import EfficiencyModule, EfficiencyResult
from analytics.mix_health import MixHealthModule, MixHealthResult
from analytics.records import PublisherRecord
from analytics.risk_tasks import RiskTask, build_risk_tasks
from analytics.tiering import TieringModule, TieringResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregationResult:
    """Outputs of one aggregation pass over a dataset."""

    activation: ActivationResult
    concentration: ConcentrationResult
    mix_health: MixHealthResult
    approval: ApprovalResult
    efficiency: EfficiencyResult
    tiering: TieringResult
    risk_tasks: tuple[RiskTask, ...]

    def fixed_metrics(self) -> dict[MetricKey, float]:
        """Closed-set scalar metrics keyed by :class:`MetricKey`."""
        activation = self.activation
        concentration = self.concentration
        approval = self.approval
        return {
            MetricKey.TOTAL_PUBLISHERS: float(activation.total_publishers),
            MetricKey.ACTIVE_PUBLISHERS: float(activation.active_publishers),
            MetricKey.ACTIVE_RATIO: activation.active_ratio,
            MetricKey.TOTAL_GMV: activation.total_gmv,
            MetricKey.GMV_PER_ACTIVE: activation.gmv_per_active,
            MetricKey.TOP1_SHARE: concentration.top1_share,
            MetricKey.TOP3_SHARE: concentration.top3_share,
            MetricKey.TOP10_SHARE: concentration.top10_share,
            MetricKey.PUBLISHERS_TO_50PCT: float(concentration.publishers_to_50pct),
            MetricKey.APPROVAL_RATE: approval.approval_rate,
            MetricKey.TOTAL_APPROVED_GMV: approval.total_approved,
            MetricKey.TOTAL_PENDING_GMV: approval.total_pending,
            MetricKey.TOTAL_DECLINED_GMV: approval.total_declined,
        }

    def bucket_shares(self) -> dict[str, float]:
        """Open-ended ``bucket -> gmv_share`` family from the mix module."""
        return self.mix_health.bucket_shares

    def metric_rows(self) -> list[MetricRow]:
        """
        Flatten fixed metrics and bucket shares into persistable rows.

        A bucket whose ``{bucket}_share`` key would shadow a fixed metric
        key is left out of the scalar set; it stays visible in the mix
        evidence table.
        """
        rows = [
            MetricRow(metric_key=key.value, value_num=value, module_id=int(key.module_id))
            for key, value in self.fixed_metrics().items()
        ]
        for bucket, share in self.bucket_shares().items():
            metric_key = share_metric_key(bucket)
            if metric_key in FIXED_METRIC_KEYS:
                logger.warning(
                    "Skipping bucket share metric %r: collides with a fixed metric key.",
                    metric_key,
                )
                continue
            rows.append(
                MetricRow(
                    metric_key=metric_key,
                    value_num=share,
                    module_id=int(ModuleId.MIX_HEALTH),
                )
            )
        return rows


class AggregationEngine:
    """Stateless runner for the aggregation modules."""

    def __init__(self) -> None:
        self._activation = ActivationModule()
        self._concentration = ConcentrationModule()
        self._mix_health = MixHealthModule()
        self._approval = ApprovalModule()
        self._efficiency = EfficiencyModule()
        self._tiering = TieringModule()

    def run(self, records: Sequence[PublisherRecord]) -> AggregationResult:
        """
        Compute every module over *records*.

        Parameters
        ----------
        records:
            Normalized publisher records, in normalized order.

        Returns
        -------
        AggregationResult
        """
        activation = self._activation.calculate(records)
        concentration = self._concentration.calculate(records)
        mix_health = self._mix_health.calculate(records)
        approval = self._approval.calculate(records)
        efficiency = self._efficiency.calculate(records)
        tiering = self._tiering.calculate(records)
        risk_tasks = build_risk_tasks(
            active_ratio=activation.active_ratio,
            top10_share=concentration.top10_share,
            approval_rate=approval.approval_rate,
        )

        logger.debug(
            "Aggregated %d records: active=%d total_gmv=%.2f buckets=%d",
            activation.total_publishers,
            activation.active_publishers,
            activation.total_gmv,
            len(mix_health.buckets),
        )
        return AggregationResult(
            activation=activation,
            concentration=concentration,
            mix_health=mix_health,
            approval=approval,
            efficiency=efficiency,
            tiering=tiering,
            risk_tasks=tuple(risk_tasks),
        )
