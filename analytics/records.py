"""
analytics/records.py

Canonical publisher record consumed by every analytics module.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PublisherRecord:
    """
    One distinct publisher within a dataset after cleaning and dedupe.

    ``position`` is the record's index in normalized order (first-seen
    position of its dedupe key).  Every revenue ranking breaks ties on it.
    """

    dedupe_key: str
    position: int
    publisher_id: str | None = None
    publisher_name: str | None = None
    publisher_type: str = ""
    total_revenue: float = 0.0
    total_commission: float = 0.0
    orders: float = 0.0
    approved_revenue: float = 0.0
    pending_revenue: float = 0.0
    declined_revenue: float = 0.0

    @property
    def display_name(self) -> str:
        """Name shown in evidence rows; falls back to the publisher id."""
        return self.publisher_name or self.publisher_id or "Unknown"

    @property
    def is_active(self) -> bool:
        """Active publishers are the ones with strictly positive revenue."""
        return self.total_revenue > 0
