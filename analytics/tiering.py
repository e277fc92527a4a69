"""
analytics/tiering.py

Tiering module: rank-based contribution tiers over ALL records.

Assignment, evaluated in priority order for the record at 1-based rank r:

1. ``total_revenue <= 0``  -> Tier 4 (overrides rank)
2. r <= 10                 -> Tier 1
3. r <= 50                 -> Tier 2
4. otherwise               -> Tier 3

Ranking uses the same comparator as the concentration module.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from analytics.base import BaseAnalyticsModule
from analytics.contracts import ModuleId
from analytics.ranking import rank_by_revenue, share_of_total
from analytics.records import PublisherRecord

TIER_1 = "Tier 1"
TIER_2 = "Tier 2"
TIER_3 = "Tier 3"
TIER_4 = "Tier 4"
TIER_ORDER: tuple[str, ...] = (TIER_1, TIER_2, TIER_3, TIER_4)

TIER_1_MAX_RANK = 10
TIER_2_MAX_RANK = 50
TOP_MEMBERS_PER_TIER = 5


@dataclass(frozen=True)
class TierSummary:
    tier: str
    count: int
    gmv: float
    gmv_share: float
    top_members: tuple[PublisherRecord, ...]


@dataclass(frozen=True)
class TieringResult:
    tiers: tuple[TierSummary, ...]
    assignments: dict[str, str]

    def tier_of(self, dedupe_key: str) -> str:
        return self.assignments[dedupe_key]

    def summary(self, tier: str) -> TierSummary:
        for item in self.tiers:
            if item.tier == tier:
                return item
        raise KeyError(tier)


def assign_tier(record: PublisherRecord, rank: int) -> str:
    """Tier label for *record* at 1-based revenue *rank*."""
    if record.total_revenue <= 0:
        return TIER_4
    if rank <= TIER_1_MAX_RANK:
        return TIER_1
    if rank <= TIER_2_MAX_RANK:
        return TIER_2
    return TIER_3


class TieringModule(BaseAnalyticsModule[TieringResult]):
    module_id = ModuleId.TIERING

    def calculate(self, records: Sequence[PublisherRecord]) -> TieringResult:
        total_gmv = sum((record.total_revenue for record in records), 0.0)
        members: dict[str, list[PublisherRecord]] = {tier: [] for tier in TIER_ORDER}
        assignments: dict[str, str] = {}

        for rank, record in enumerate(rank_by_revenue(records), start=1):
            tier = assign_tier(record, rank)
            members[tier].append(record)
            assignments[record.dedupe_key] = tier

        tiers = []
        for tier in TIER_ORDER:
            tier_members = members[tier]
            gmv = sum((record.total_revenue for record in tier_members), 0.0)
            tiers.append(
                TierSummary(
                    tier=tier,
                    count=len(tier_members),
                    gmv=gmv,
                    gmv_share=share_of_total(gmv, total_gmv),
                    # members are already in revenue order
                    top_members=tuple(tier_members[:TOP_MEMBERS_PER_TIER]),
                )
            )
        return TieringResult(tiers=tuple(tiers), assignments=assignments)
