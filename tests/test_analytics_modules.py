"""
tests/test_analytics_modules.py

Pytest unit tests for the aggregation modules.

All tests are pure Python: no database, no I/O.

Coverage
--------
- Ranking comparator and guarded division
- Activation ratios and zero denominators
- Concentration shares, monotonicity and the half-GMV boundary
- Mix buckets, deal/coupon folding and share totals
- Approval totals over all records
- Efficiency unit economics
- Tier assignment rules
- Risk task priorities
"""

from __future__ import annotations

import pytest

from analytics.activation import ActivationModule
from analytics.approval import ApprovalModule, publisher_rates
from analytics.concentration import ConcentrationModule
from analytics.efficiency import EfficiencyModule
from analytics.mix_health import MixHealthModule, normalize_bucket
from analytics.ranking import prefix_sums, rank_by_revenue, safe_ratio, share_of_total
from analytics.risk_tasks import build_risk_tasks
from analytics.tiering import TIER_1, TIER_2, TIER_3, TIER_4, TieringModule, assign_tier
from tests.factories import make_record, worked_example


# ---------------------------------------------------------------------------
# Ranking helpers
# ---------------------------------------------------------------------------


class TestRanking:
    def test_ties_are_broken_by_position(self) -> None:
        records = [make_record(0, 10.0), make_record(1, 20.0), make_record(2, 10.0)]

        ranked = rank_by_revenue(reversed(records))

        assert [record.position for record in ranked] == [1, 0, 2]

    def test_prefix_sums_match_running_totals(self) -> None:
        ranked = rank_by_revenue([make_record(0, 0.1), make_record(1, 0.2), make_record(2, 0.3)])

        sums = prefix_sums(ranked)

        assert sums[-1] == sum(record.total_revenue for record in ranked)
        assert len(sums) == 3

    def test_safe_ratio_guards_zero_denominator(self) -> None:
        assert safe_ratio(5.0, 0.0) == 0.0
        assert safe_ratio(1.0, 4.0) == 0.25

    def test_share_of_total_is_zero_for_non_positive_total(self) -> None:
        assert share_of_total(5.0, 0.0) == 0.0
        assert share_of_total(5.0, -10.0) == 0.0


# ---------------------------------------------------------------------------
# Activation
# ---------------------------------------------------------------------------


class TestActivation:
    def test_worked_example(self) -> None:
        result = ActivationModule().calculate(worked_example())

        assert result.total_publishers == 3
        assert result.active_publishers == 2
        assert result.active_ratio == pytest.approx(2 / 3)
        assert result.total_gmv == pytest.approx(150.0)
        assert result.gmv_per_active == pytest.approx(75.0)

    def test_empty_input_yields_zeros(self) -> None:
        result = ActivationModule().calculate([])

        assert result.total_publishers == 0
        assert result.active_ratio == 0.0
        assert result.gmv_per_active == 0.0

    def test_all_zero_revenue(self) -> None:
        result = ActivationModule().calculate([make_record(0), make_record(1)])

        assert result.active_publishers == 0
        assert result.active_ratio == 0.0
        assert result.gmv_per_active == 0.0

    @pytest.mark.parametrize("revenues", [[1.0], [0.0, 5.0], [3.0, 3.0, 0.0, 0.0], [0.0] * 4])
    def test_active_ratio_is_bounded(self, revenues: list[float]) -> None:
        records = [make_record(i, revenue) for i, revenue in enumerate(revenues)]

        assert 0.0 <= ActivationModule().calculate(records).active_ratio <= 1.0


# ---------------------------------------------------------------------------
# Concentration
# ---------------------------------------------------------------------------


class TestConcentration:
    def test_worked_example(self) -> None:
        result = ConcentrationModule().calculate(worked_example())

        assert result.top1_share == pytest.approx(100 / 150)
        assert result.top3_share == pytest.approx(1.0)
        assert result.top10_share == pytest.approx(1.0)
        assert result.publishers_to_50pct == 1
        assert [record.position for record in result.ranked_active] == [0, 2]

    def test_shares_are_monotone(self) -> None:
        records = [make_record(i, float(revenue)) for i, revenue in enumerate(range(1, 16))]

        result = ConcentrationModule().calculate(records)

        assert 0.0 <= result.top1_share <= result.top3_share <= result.top10_share <= 1.0
        assert result.top3_share > result.top1_share
        assert result.top10_share > result.top3_share

    def test_half_gmv_boundary(self) -> None:
        records = [make_record(i, revenue) for i, revenue in enumerate([30.0, 25.0, 20.0, 15.0, 10.0])]

        result = ConcentrationModule().calculate(records)
        k = result.publishers_to_50pct
        half = 0.5 * result.total_gmv

        assert k == 2
        assert result.cumulative_gmv[k - 1] >= half
        assert result.cumulative_gmv[k - 2] < half

    def test_exactly_half_counts_as_reached(self) -> None:
        records = [make_record(0, 50.0), make_record(1, 30.0), make_record(2, 20.0)]

        assert ConcentrationModule().calculate(records).publishers_to_50pct == 1

    def test_zero_gmv_yields_zero_everywhere(self) -> None:
        result = ConcentrationModule().calculate([make_record(0), make_record(1)])

        assert result.top_shares == {1: 0.0, 3: 0.0, 10: 0.0}
        assert result.publishers_to_50pct == 0
        assert result.ranked_active == ()
        assert result.cumulative_gmv == ()

    def test_fewer_records_than_k_uses_all_of_them(self) -> None:
        result = ConcentrationModule().calculate([make_record(0, 10.0), make_record(1, 30.0)])

        assert result.top3_share == pytest.approx(1.0)
        assert result.top10_share == pytest.approx(1.0)

    def test_unclamped_negative_revenue_keeps_shares_bounded(self) -> None:
        records = [make_record(0, 100.0), make_record(1, 50.0), make_record(2, -60.0)]

        result = ConcentrationModule().calculate(records)

        assert result.total_gmv == pytest.approx(90.0)
        assert result.share_base == pytest.approx(150.0)
        assert result.top1_share == pytest.approx(100 / 150)
        assert result.top3_share == pytest.approx(1.0)
        assert 0.0 <= result.top1_share <= result.top3_share <= result.top10_share <= 1.0


# ---------------------------------------------------------------------------
# Mix health
# ---------------------------------------------------------------------------


class TestMixHealth:
    @pytest.mark.parametrize(
        "raw, bucket",
        [
            ("Content", "content"),
            ("Deals & Coupons", "deal_coupon"),
            ("coupon", "deal_coupon"),
            ("Cash-back / Loyalty", "cash_back_loyalty"),
            ("", "other"),
            (None, "other"),
            ("  --  ", "other"),
        ],
    )
    def test_normalize_bucket(self, raw: str | None, bucket: str) -> None:
        assert normalize_bucket(raw) == bucket

    def test_worked_example_buckets(self) -> None:
        result = MixHealthModule().calculate(worked_example())

        assert [bucket.bucket for bucket in result.buckets] == ["content", "deal_coupon"]
        assert result.bucket_shares == pytest.approx({"content": 100 / 150, "deal_coupon": 50 / 150})
        assert result.buckets[0].count_share == pytest.approx(0.5)

    def test_inactive_records_are_excluded(self) -> None:
        result = MixHealthModule().calculate(worked_example())

        assert "loyalty" not in result.bucket_shares
        assert result.active_publishers == 2

    def test_single_bucket_holds_all_active_gmv(self) -> None:
        records = [
            make_record(0, 40.0, publisher_type="Content"),
            make_record(1, 60.0, publisher_type="content"),
        ]

        result = MixHealthModule().calculate(records)

        assert result.bucket_shares == pytest.approx({"content": 1.0})
        assert result.buckets[0].count == 2

    def test_bucket_shares_sum_to_active_share_of_gmv(self) -> None:
        records = [
            make_record(0, 10.0, publisher_type="A"),
            make_record(1, 20.0, publisher_type="B"),
            make_record(2, 30.0, publisher_type="A"),
        ]

        result = MixHealthModule().calculate(records)

        assert sum(result.bucket_shares.values()) == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# Approval
# ---------------------------------------------------------------------------


class TestApproval:
    def test_worked_example(self) -> None:
        result = ApprovalModule().calculate(worked_example())

        assert result.total_gmv == pytest.approx(150.0)
        assert result.total_approved == pytest.approx(130.0)
        assert result.approval_rate == pytest.approx(130 / 150)

    def test_sums_include_inactive_records(self) -> None:
        records = [make_record(0, 0.0, pending_revenue=5.0, declined_revenue=2.0), make_record(1, 10.0)]

        result = ApprovalModule().calculate(records)

        assert result.total_pending == 5.0
        assert result.total_declined == 2.0

    def test_zero_gmv_rate_is_zero(self) -> None:
        assert ApprovalModule().calculate([make_record(0, approved_revenue=5.0)]).approval_rate == 0.0

    def test_publisher_rates(self) -> None:
        rates = publisher_rates(make_record(0, 50.0, approved_revenue=40.0, declined_revenue=10.0))

        assert rates.approval_rate == pytest.approx(0.8)
        assert rates.decline_rate == pytest.approx(0.2)


# ---------------------------------------------------------------------------
# Efficiency
# ---------------------------------------------------------------------------


class TestEfficiency:
    def test_unit_economics(self) -> None:
        record = make_record(0, 100.0, total_commission=10.0, orders=4.0)

        point = EfficiencyModule().calculate([record]).publishers[0]

        assert point.cpa == pytest.approx(2.5)
        assert point.aov == pytest.approx(25.0)
        assert point.roi == pytest.approx(10.0)

    def test_zero_orders_and_commission_yield_zero(self) -> None:
        point = EfficiencyModule().calculate([make_record(0, 100.0)]).publishers[0]

        assert (point.cpa, point.aov, point.roi) == (0.0, 0.0, 0.0)

    def test_only_active_records_in_revenue_order(self) -> None:
        result = EfficiencyModule().calculate(worked_example())

        assert [point.record.position for point in result.publishers] == [0, 2]


# ---------------------------------------------------------------------------
# Tiering
# ---------------------------------------------------------------------------


class TestTiering:
    @pytest.mark.parametrize(
        "rank, revenue, tier",
        [
            (1, 10.0, TIER_1),
            (10, 10.0, TIER_1),
            (11, 10.0, TIER_2),
            (50, 10.0, TIER_2),
            (51, 10.0, TIER_3),
            (1, 0.0, TIER_4),
            (3, -1.0, TIER_4),
        ],
    )
    def test_assign_tier(self, rank: int, revenue: float, tier: str) -> None:
        assert assign_tier(make_record(0, revenue), rank) == tier

    def test_exactly_ten_tier_one_with_enough_active_records(self) -> None:
        records = [make_record(i, float(100 - i)) for i in range(60)]
        records += [make_record(60 + i, 0.0) for i in range(3)]

        result = TieringModule().calculate(records)

        assert result.summary(TIER_1).count == 10
        assert result.summary(TIER_2).count == 40
        assert result.summary(TIER_3).count == 10
        assert result.summary(TIER_4).count == 3

    def test_zero_revenue_is_tier_four_even_at_top_rank(self) -> None:
        result = TieringModule().calculate(worked_example())

        assert result.tier_of("pub-0") == TIER_1
        assert result.tier_of("pub-2") == TIER_1
        assert result.tier_of("pub-1") == TIER_4

    def test_top_members_follow_revenue_order(self) -> None:
        records = [make_record(i, float(i + 1)) for i in range(8)]

        top = TieringModule().calculate(records).summary(TIER_1).top_members

        assert [record.position for record in top] == [7, 6, 5, 4, 3]


# ---------------------------------------------------------------------------
# Risk tasks
# ---------------------------------------------------------------------------


class TestRiskTasks:
    def test_thresholds_drive_priorities(self) -> None:
        tasks = build_risk_tasks(active_ratio=0.2, top10_share=0.7, approval_rate=0.6)

        assert [task.priority for task in tasks] == ["high", "high", "high", "medium"]
        assert tasks[0].name == "Activation uplift plan (target active ratio 40%)"
        assert tasks[1].name == "Deconcentration plan (Top10 70%)"

    def test_healthy_metrics_are_medium(self) -> None:
        tasks = build_risk_tasks(active_ratio=0.8, top10_share=0.3, approval_rate=0.95)

        assert {task.priority for task in tasks} == {"medium"}
        assert [task.month_start for task in tasks] == [1, 2, 3, 6]
