from datetime import date, time
from decimal import Decimal
from fractions import Fraction

import pytest

from src.config.settings import config
from src.services.billing.discount import allocate_first_hour_discount
from src.services.billing.estimate import check_estimate_invariants, estimate_scheduled_cost
from src.services.billing.schema import PriceBlock
from src.services.billing.segmenter import segment
from src.services.billing.tiers import TierTable, default_tier_table

MONDAY = date(2024, 1, 1)


class TestSegment:
    def test_blocks_merge_contiguous_increments(self, monday_tiers: TierTable) -> None:
        blocks = segment(MONDAY, time(15), time(19), Decimal("100"), monday_tiers)
        assert blocks is not None
        assert [(b.tier_name, b.minutes, b.cost) for b in blocks] == [
            ("Standard", 120, Decimal("200.00")),
            ("Premium", 120, Decimal("300.00")),
        ]

    def test_zero_length_interval_has_no_blocks(self, monday_tiers: TierTable) -> None:
        assert segment(MONDAY, time(10), time(10), Decimal("100"), monday_tiers) == []

    def test_trailing_partial_increment_keeps_real_length(self, monday_tiers: TierTable) -> None:
        blocks = segment(MONDAY, time(16), time(16, 45), Decimal("100"), monday_tiers)
        assert blocks == [PriceBlock("Standard", Decimal("1.0"), 45, Decimal("75.00"))]

    def test_increment_billed_at_tier_of_its_start(self, monday_tiers: TierTable) -> None:
        # 16:45-17:15 starts in Standard, 17:15-17:20 in Premium
        blocks = segment(MONDAY, time(16, 45), time(17, 20), Decimal("100"), monday_tiers)
        assert blocks is not None
        assert [(b.tier_name, b.minutes, b.cost) for b in blocks] == [
            ("Standard", 30, Decimal("50.00")),
            ("Premium", 5, Decimal("12.50")),
        ]

    def test_block_cost_rounds_to_cents(self, monday_tiers: TierTable) -> None:
        blocks = segment(MONDAY, time(10), time(10, 20), Decimal("100"), monday_tiers)
        assert blocks is not None
        assert blocks[0].cost == Decimal("33.33")

    def test_uncovered_hours_use_default_tier(self, monday_tiers: TierTable) -> None:
        blocks = segment(MONDAY, time(8), time(10), Decimal("80"), monday_tiers)
        assert blocks is not None
        # default Standard x1.0 and explicit Standard x1.0 share a key and merge
        assert [(b.tier_name, b.minutes, b.cost) for b in blocks] == [
            ("Standard", 120, Decimal("160.00")),
        ]

    def test_string_inputs_are_accepted(self, monday_tiers: TierTable) -> None:
        blocks = segment("2024-01-01", "16:00:00", "18:00:00", "100", monday_tiers)
        assert blocks is not None
        assert len(blocks) == 2


class TestEstimateScheduledCost:
    def test_standard_then_premium(self, monday_tiers: TierTable) -> None:
        est = estimate_scheduled_cost(
            MONDAY, time(16), time(18), Decimal("100"), False, "Standard", monday_tiers
        )
        assert est is not None
        assert [b.to_dict() for b in est.breakdown] == [
            {"tier_name": "Standard", "multiplier": "1.0", "hours": 1.0, "cost": "100.00"},
            {"tier_name": "Premium", "multiplier": "1.5", "hours": 1.0, "cost": "150.00"},
        ]
        assert est.subtotal == Decimal("250.00")
        assert est.total == Decimal("250.00")
        assert est.first_hour_discount is None
        assert est.first_hour_breakdown is None

    def test_first_request_gets_standard_hour_free(self, monday_tiers: TierTable) -> None:
        est = estimate_scheduled_cost(
            MONDAY, time(16), time(18), Decimal("100"), True, "Standard", monday_tiers
        )
        assert est is not None
        assert est.first_hour_discount == Decimal("100.00")
        assert est.total == Decimal("150.00")
        assert est.first_hour_breakdown is not None
        assert [(b.tier_name, b.minutes) for b in est.first_hour_breakdown] == [("Standard", 60)]

    def test_first_hour_spanning_two_tiers_is_prorated(self, monday_tiers: TierTable) -> None:
        est = estimate_scheduled_cost(
            MONDAY, time(16, 30), time(18, 30), Decimal("100"), True, None, monday_tiers
        )
        assert est is not None
        assert est.subtotal == Decimal("275.00")
        assert est.first_hour_breakdown is not None
        assert [(b.tier_name, b.minutes, b.discount) for b in est.first_hour_breakdown] == [
            ("Standard", 30, Decimal("50.00")),
            ("Premium", 30, Decimal("75.00")),
        ]
        assert est.first_hour_discount == Decimal("125.00")
        assert est.total == Decimal("150.00")

    def test_zero_length_interval(self, monday_tiers: TierTable) -> None:
        est = estimate_scheduled_cost(
            MONDAY, time(10), time(10), Decimal("100"), True, "Standard", monday_tiers
        )
        assert est is not None
        assert est.breakdown == ()
        assert est.duration_hours == 0
        assert est.subtotal == Decimal("0")
        assert est.first_hour_discount is None

    def test_short_first_request_gets_no_discount(self, monday_tiers: TierTable) -> None:
        est = estimate_scheduled_cost(
            MONDAY, time(10), time(10, 30), Decimal("100"), True, "Standard", monday_tiers
        )
        assert est is not None
        assert est.first_hour_discount is None
        assert est.total == Decimal("50.00")

    @pytest.mark.parametrize(
        "args",
        [
            (None, time(9), time(10), Decimal("100")),
            (MONDAY, None, time(10), Decimal("100")),
            (MONDAY, time(9), "", Decimal("100")),
            (MONDAY, time(9), time(10), None),
        ],
    )
    def test_missing_input_means_no_estimate(self, monday_tiers: TierTable, args: tuple) -> None:
        assert estimate_scheduled_cost(*args, False, "Standard", monday_tiers) is None

    def test_overnight_interval_continues_into_next_day(self) -> None:
        est = estimate_scheduled_cost(
            MONDAY, time(22), time(1), Decimal("100"), False, None, default_tier_table()
        )
        assert est is not None
        assert est.duration_hours == 3
        # Monday 22:00-24:00 and Tuesday 00:00-01:00 are both Emergency x1.75
        assert [(b.tier_name, b.minutes, b.cost) for b in est.breakdown] == [
            ("Emergency", 180, Decimal("525.00")),
        ]
        assert check_estimate_invariants(est) == []

    def test_overnight_minutes_use_next_days_tiers(self, monday_tiers: TierTable) -> None:
        # Sunday night into Monday morning: only the Monday part hits Standard 09-17
        blocks = segment(date(2023, 12, 31), time(23), time(10), Decimal("100"), monday_tiers)
        assert blocks is not None
        assert sum(b.minutes for b in blocks) == 11 * 60
        assert [(b.tier_name, b.multiplier) for b in blocks] == [("Standard", Decimal("1.0"))]

    def test_zero_base_rate_means_no_estimate(self, monday_tiers: TierTable) -> None:
        assert (
            estimate_scheduled_cost(
                MONDAY, time(9), time(10), Decimal("0"), False, "Standard", monday_tiers
            )
            is None
        )

    def test_default_category_from_config(
        self, monkeypatch: pytest.MonkeyPatch, monday_tiers: TierTable
    ) -> None:
        monkeypatch.setattr(config, "billing_default_category", "Residential", raising=False)
        est = estimate_scheduled_cost(
            MONDAY, time(9), time(10), Decimal("100"), False, None, monday_tiers
        )
        assert est is not None
        assert est.rate_category_name == "Residential"

    def test_identical_inputs_give_identical_output(self) -> None:
        table = default_tier_table()
        first = estimate_scheduled_cost(
            MONDAY, time(5), time(23), Decimal("87.50"), True, "Standard", table
        )
        second = estimate_scheduled_cost(
            MONDAY, time(5), time(23), Decimal("87.50"), True, "Standard", table
        )
        assert first == second
        assert first is not None and second is not None
        assert first.to_dict() == second.to_dict()

    @pytest.mark.parametrize(
        "start,end",
        [
            (time(0), time(23, 59)),
            (time(5, 10), time(9, 55)),
            (time(21, 45), time(23, 15)),
            (time(7, 59), time(8, 1)),
        ],
    )
    def test_invariants_hold_on_default_schedule(self, start: time, end: time) -> None:
        for day in range(1, 8):
            est = estimate_scheduled_cost(
                date(2024, 1, day), start, end, Decimal("95"), True, "Standard", default_tier_table()
            )
            assert est is not None
            assert sum((b.hours for b in est.breakdown), Fraction(0)) == est.duration_hours
            assert check_estimate_invariants(est) == []
            if est.first_hour_discount is not None:
                assert est.first_hour_discount <= est.subtotal
                assert est.first_hour_breakdown is not None
                assert sum((b.hours for b in est.first_hour_breakdown), Fraction(0)) <= 1
            assert est.total == max(Decimal("0"), est.subtotal - (est.first_hour_discount or 0))


class TestAllocateFirstHourDiscount:
    def test_inactive_for_returning_client(self) -> None:
        blocks = [PriceBlock("Standard", Decimal("1.0"), 120, Decimal("200.00"))]
        assert allocate_first_hour_discount(blocks, Decimal("100"), False, Fraction(2)) == (
            Decimal("0"),
            [],
        )

    def test_stops_after_one_hour(self) -> None:
        blocks = [
            PriceBlock("Emergency", Decimal("1.75"), 30, Decimal("87.50")),
            PriceBlock("Premium", Decimal("1.25"), 30, Decimal("62.50")),
            PriceBlock("Standard", Decimal("1.0"), 60, Decimal("100.00")),
        ]
        discount, breakdown = allocate_first_hour_discount(
            blocks, Decimal("100"), True, Fraction(2)
        )
        assert discount == Decimal("150.00")
        assert [b.tier_name for b in breakdown] == ["Emergency", "Premium"]
