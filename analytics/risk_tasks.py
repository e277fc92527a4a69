"""
analytics/risk_tasks.py

Fixed remediation-task template whose priorities follow module outputs.

A task is flagged ``high`` when its driving metric crosses a threshold:

- activation plan:       active_ratio  < 0.40
- deconcentration plan:  top10_share   > 0.50
- approval governance:   approval_rate < 0.85

The closing review task is always ``medium``.
"""

from __future__ import annotations

from dataclasses import dataclass

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"

ACTIVE_RATIO_FLOOR = 0.4
TOP10_SHARE_CEILING = 0.5
APPROVAL_RATE_FLOOR = 0.85


@dataclass(frozen=True)
class RiskTask:
    name: str
    month_start: int
    duration: int
    priority: str


def _priority(crossed: bool) -> str:
    return PRIORITY_HIGH if crossed else PRIORITY_MEDIUM


def build_risk_tasks(
    active_ratio: float,
    top10_share: float,
    approval_rate: float,
) -> list[RiskTask]:
    """Return the remediation plan, in schedule order."""
    activation_target = max(active_ratio, ACTIVE_RATIO_FLOOR)
    return [
        RiskTask(
            name=f"Activation uplift plan (target active ratio {activation_target * 100:.0f}%)",
            month_start=1,
            duration=3,
            priority=_priority(active_ratio < ACTIVE_RATIO_FLOOR),
        ),
        RiskTask(
            name=f"Deconcentration plan (Top10 {top10_share * 100:.0f}%)",
            month_start=2,
            duration=4,
            priority=_priority(top10_share > TOP10_SHARE_CEILING),
        ),
        RiskTask(
            name=f"Approval governance (approval {approval_rate * 100:.0f}%)",
            month_start=3,
            duration=2,
            priority=_priority(approval_rate < APPROVAL_RATE_FLOOR),
        ),
        RiskTask(
            name="Structure optimization and quarterly review",
            month_start=6,
            duration=3,
            priority=PRIORITY_MEDIUM,
        ),
    ]
