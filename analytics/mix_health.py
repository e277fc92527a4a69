"""
analytics/mix_health.py

Mix Health module: structural mix of active publishers by type bucket.

Bucket keys are derived from the free-form ``publisher_type``: lowercased,
runs of non-alphanumeric characters collapsed to ``_``, trimmed.  Deal and
coupon variants share the ``deal_coupon`` bucket and an empty type falls
into ``other``.  Buckets are listed in order of first appearance among the
active records.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from analytics.base import BaseAnalyticsModule
from analytics.contracts import ModuleId
from analytics.ranking import safe_ratio, share_of_total
from analytics.records import PublisherRecord

OTHER_BUCKET = "other"
DEAL_COUPON_BUCKET = "deal_coupon"

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")
_DEAL_COUPON_VARIANTS = frozenset(
    {
        "deal",
        "deals",
        "coupon",
        "coupons",
        "deal_coupon",
        "deals_coupons",
        "deal_coupons",
        "coupon_deal",
        "coupons_deals",
    }
)


def normalize_bucket(publisher_type: str | None) -> str:
    """Map a raw publisher type to its mix bucket key."""
    key = _NON_ALNUM_RUN.sub("_", (publisher_type or "").strip().lower()).strip("_")
    if not key:
        return OTHER_BUCKET
    if key in _DEAL_COUPON_VARIANTS:
        return DEAL_COUPON_BUCKET
    return key


@dataclass(frozen=True)
class MixBucket:
    bucket: str
    count: int
    gmv: float
    count_share: float
    gmv_share: float


@dataclass(frozen=True)
class MixHealthResult:
    buckets: tuple[MixBucket, ...]
    active_publishers: int
    total_gmv: float

    @property
    def bucket_shares(self) -> dict[str, float]:
        """``bucket -> gmv_share``, persisted as ``{bucket}_share`` metrics."""
        return {item.bucket: item.gmv_share for item in self.buckets}


class MixHealthModule(BaseAnalyticsModule[MixHealthResult]):
    module_id = ModuleId.MIX_HEALTH

    def calculate(self, records: Sequence[PublisherRecord]) -> MixHealthResult:
        total_gmv = sum((record.total_revenue for record in records), 0.0)
        active = [record for record in records if record.is_active]

        counts: dict[str, int] = {}
        gmv: dict[str, float] = {}
        for record in active:
            bucket = normalize_bucket(record.publisher_type)
            counts[bucket] = counts.get(bucket, 0) + 1
            gmv[bucket] = gmv.get(bucket, 0.0) + record.total_revenue

        buckets = tuple(
            MixBucket(
                bucket=bucket,
                count=count,
                gmv=gmv[bucket],
                count_share=safe_ratio(count, len(active)),
                gmv_share=share_of_total(gmv[bucket], total_gmv),
            )
            for bucket, count in counts.items()
        )
        return MixHealthResult(
            buckets=buckets,
            active_publishers=len(active),
            total_gmv=total_gmv,
        )
