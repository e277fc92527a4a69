"""
analytics/concentration.py

Concentration module: how dependent GMV is on the biggest publishers.

Active records are ranked by revenue (ties by normalized position) and
``topK_share`` is the share of total GMV held by the first K of them, for
K in :data:`TOP_K_LEVELS`.  Shares divide by ``share_base``, the larger of
total GMV and the active GMV, so they stay within [0, 1].  ``publishers_to_50pct`` counts how many ranked
publishers are needed before the running sum reaches half of total GMV.

The ranked list and its prefix sums are kept on the result so that the
TopN and Pareto evidence tables reuse exactly the same cumulative values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from analytics.base import BaseAnalyticsModule
from analytics.contracts import ModuleId
from analytics.ranking import prefix_sums, rank_by_revenue, share_of_total
from analytics.records import PublisherRecord

TOP_K_LEVELS: tuple[int, ...] = (1, 3, 10)
HALF_GMV_THRESHOLD = 0.5


@dataclass(frozen=True)
class ConcentrationResult:
    total_gmv: float
    share_base: float
    top_shares: dict[int, float]
    publishers_to_50pct: int
    ranked_active: tuple[PublisherRecord, ...]
    cumulative_gmv: tuple[float, ...]

    @property
    def top1_share(self) -> float:
        return self.top_shares[1]

    @property
    def top3_share(self) -> float:
        return self.top_shares[3]

    @property
    def top10_share(self) -> float:
        return self.top_shares[10]


class ConcentrationModule(BaseAnalyticsModule[ConcentrationResult]):
    module_id = ModuleId.CONCENTRATION

    def calculate(self, records: Sequence[PublisherRecord]) -> ConcentrationResult:
        total_gmv = sum((record.total_revenue for record in records), 0.0)
        ranked = tuple(rank_by_revenue(r for r in records if r.is_active))
        cumulative = prefix_sums(ranked)
        # negative revenues (clamping disabled) can pull the total below the active sum
        share_base = max(total_gmv, cumulative[-1] if cumulative else 0.0)

        top_shares = {
            k: share_of_total(_prefix_at(cumulative, k), share_base)
            for k in TOP_K_LEVELS
        }

        return ConcentrationResult(
            total_gmv=total_gmv,
            share_base=share_base,
            top_shares=top_shares,
            publishers_to_50pct=_publishers_to_half(cumulative, total_gmv),
            ranked_active=ranked,
            cumulative_gmv=cumulative,
        )


def _prefix_at(cumulative: Sequence[float], k: int) -> float:
    """Sum of the first *k* ranked revenues (all of them if fewer exist)."""
    if not cumulative:
        return 0.0
    return cumulative[min(k, len(cumulative)) - 1]


def _publishers_to_half(cumulative: Sequence[float], total_gmv: float) -> int:
    if total_gmv <= 0:
        return 0
    threshold = HALF_GMV_THRESHOLD * total_gmv
    count = 0
    for running in cumulative:
        count += 1
        if running >= threshold:
            break
    return count
