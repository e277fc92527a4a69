"""
analytics/approval.py

Approval module: how much of total GMV has been approved.

Sums run over ALL records, not only the active ones.

approval_rate = sum(approved_revenue) / sum(total_revenue)   (0 if no GMV)

Per-publisher rates are exposed through :func:`publisher_rates` for the
approval detail evidence table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from analytics.base import BaseAnalyticsModule
from analytics.contracts import ModuleId
from analytics.ranking import safe_ratio, share_of_total
from analytics.records import PublisherRecord


@dataclass(frozen=True)
class ApprovalResult:
    total_gmv: float
    total_approved: float
    total_pending: float
    total_declined: float
    approval_rate: float


@dataclass(frozen=True)
class PublisherApproval:
    record: PublisherRecord
    approval_rate: float
    decline_rate: float


class ApprovalModule(BaseAnalyticsModule[ApprovalResult]):
    module_id = ModuleId.APPROVAL

    def calculate(self, records: Sequence[PublisherRecord]) -> ApprovalResult:
        total_gmv = sum((r.total_revenue for r in records), 0.0)
        approved = sum((r.approved_revenue for r in records), 0.0)
        pending = sum((r.pending_revenue for r in records), 0.0)
        declined = sum((r.declined_revenue for r in records), 0.0)

        return ApprovalResult(
            total_gmv=total_gmv,
            total_approved=approved,
            total_pending=pending,
            total_declined=declined,
            approval_rate=share_of_total(approved, total_gmv),
        )


def publisher_rates(record: PublisherRecord) -> PublisherApproval:
    """Approval and decline rate of a single publisher (0 without revenue)."""
    return PublisherApproval(
        record=record,
        approval_rate=safe_ratio(record.approved_revenue, record.total_revenue),
        decline_rate=safe_ratio(record.declined_revenue, record.total_revenue),
    )
