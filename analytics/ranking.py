"""
analytics/ranking.py

Shared ordering and guarded-division helpers.

Every ranking in the pipeline uses :func:`revenue_sort_key`: revenue
descending, then normalized position ascending.  The key is a total
order, so results never depend on the stability of ``sorted``.
"""

from __future__ import annotations

import math
from itertools import accumulate
from typing import Iterable, Sequence

from analytics.records import PublisherRecord


def revenue_sort_key(record: PublisherRecord) -> tuple[float, int]:
    return (-record.total_revenue, record.position)


def rank_by_revenue(records: Iterable[PublisherRecord]) -> list[PublisherRecord]:
    """Return *records* ordered by revenue desc, ties by normalized position."""
    return sorted(records, key=revenue_sort_key)


def prefix_sums(ranked: Sequence[PublisherRecord]) -> tuple[float, ...]:
    """
    Cumulative revenue after each record of *ranked*.

    ``prefix_sums(r)[i]`` equals ``sum(x.total_revenue for x in r[: i + 1])``
    bit for bit: both add the same values left to right from zero.
    """
    return tuple(accumulate(record.total_revenue for record in ranked))


def safe_ratio(numerator: float, denominator: float) -> float:
    """
    ``numerator / denominator``, or ``0.0`` when the denominator is zero.

    Non-finite results are also reported as ``0.0`` so no NaN or infinity
    ever reaches a snapshot.
    """
    if denominator == 0:
        return 0.0
    value = numerator / denominator
    return value if math.isfinite(value) else 0.0


def share_of_total(part: float, total: float) -> float:
    """Share of a GMV total; ``0.0`` whenever the total is not positive."""
    if total <= 0:
        return 0.0
    return safe_ratio(part, total)
