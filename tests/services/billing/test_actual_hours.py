from datetime import datetime, timezone
from decimal import Decimal
from fractions import Fraction

import pytest

from src.config.settings import config
from src.services.billing.actual_hours import (
    compute_billable_hours,
    reconcile_actual_hours,
    round_up_to_boundary,
)
from src.services.billing.schema import TimeEntry
from src.services.billing.tiers import TierTable


def _entries() -> list[tuple[datetime, datetime]]:
    # Monday: 30 min of Standard, a break, then 37 min of Premium (last end 18:07)
    return [
        (datetime(2024, 1, 1, 16, 30), datetime(2024, 1, 1, 17, 0)),
        (datetime(2024, 1, 1, 17, 30), datetime(2024, 1, 1, 18, 7)),
    ]


class TestRoundUpToBoundary:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (datetime(2024, 1, 1, 14, 7), datetime(2024, 1, 1, 14, 15)),
            (datetime(2024, 1, 1, 14, 15), datetime(2024, 1, 1, 14, 15)),
            (datetime(2024, 1, 1, 14, 15, 30), datetime(2024, 1, 1, 14, 30)),
            (datetime(2024, 1, 1, 14, 52), datetime(2024, 1, 1, 15, 0)),
            (datetime(2024, 1, 1, 23, 50), datetime(2024, 1, 2, 0, 0)),
        ],
    )
    def test_round_up(self, raw: datetime, expected: datetime) -> None:
        assert round_up_to_boundary(raw) == expected


class TestReconcileActualHours:
    def test_minutes_per_tier_with_last_end_rounded(self, monday_tiers: TierTable) -> None:
        result = reconcile_actual_hours(_entries(), monday_tiers)

        standard = result.for_tier("Standard")
        premium = result.for_tier("Premium")
        assert standard is not None and premium is not None
        assert standard.actual_minutes == 30
        assert standard.actual_hours == Decimal("0.50")
        # 17:30-18:07 rounded to 18:15
        assert premium.actual_minutes == 45
        assert premium.actual_hours == Decimal("0.75")
        assert result.total_minutes == 75

    def test_only_last_entry_is_rounded(self, monday_tiers: TierTable) -> None:
        entries = [
            (datetime(2024, 1, 1, 10, 0), datetime(2024, 1, 1, 10, 7)),
            (datetime(2024, 1, 1, 11, 0), datetime(2024, 1, 1, 11, 7)),
        ]
        result = reconcile_actual_hours(entries, monday_tiers)
        assert result.total_minutes == 7 + 15

    def test_entries_are_ordered_chronologically(self, monday_tiers: TierTable) -> None:
        entries = list(reversed(_entries()))
        result = reconcile_actual_hours(entries, monday_tiers)
        assert [e.start.hour for e in result.time_entries] == [16, 17]
        assert result.total_minutes == 75

    def test_billed_hours_shown_next_to_actual(self, monday_tiers: TierTable) -> None:
        result = reconcile_actual_hours(
            _entries(),
            monday_tiers,
            billed_hours={"Premium": Fraction(1, 4), "Emergency": Fraction(0)},
        )
        data = result.to_dict()
        assert data["premium"] == {
            "actual_minutes": 45,
            "actual_hours": "0.75",
            "rounded_hours": "0.25",
        }
        assert data["standard"]["rounded_hours"] is None
        assert data["emergency"]["actual_minutes"] == 0
        assert len(data["timeEntries"]) == 2

    def test_no_entries(self, monday_tiers: TierTable) -> None:
        result = reconcile_actual_hours([], monday_tiers)
        assert result.tiers == ()
        assert result.total_minutes == 0

    def test_aware_timestamps_use_billing_timezone(
        self, monkeypatch: pytest.MonkeyPatch, monday_tiers: TierTable
    ) -> None:
        monkeypatch.setattr(config, "billing_timezone", "America/New_York", raising=False)
        entries = [
            TimeEntry(
                start=datetime(2024, 1, 1, 21, 0, tzinfo=timezone.utc),
                end=datetime(2024, 1, 1, 22, 0, tzinfo=timezone.utc),
            )
        ]
        result = reconcile_actual_hours(entries, monday_tiers)
        # 16:00-17:00 in New York is Standard time
        standard = result.for_tier("Standard")
        assert standard is not None
        assert standard.actual_minutes == 60
        assert result.for_tier("Premium") is None


class TestDaylightSavingTransitions:
    @pytest.fixture(autouse=True)
    def _new_york(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(config, "billing_timezone", "America/New_York", raising=False)

    def test_fall_back_counts_the_repeated_hour(self, monday_tiers: TierTable) -> None:
        # 01:00 EDT -> 02:00 EST: two real hours on a one-hour-looking wall clock
        entries = [
            TimeEntry(
                start=datetime(2024, 11, 3, 5, 0, tzinfo=timezone.utc),
                end=datetime(2024, 11, 3, 7, 0, tzinfo=timezone.utc),
            )
        ]
        result = reconcile_actual_hours(entries, monday_tiers)
        assert result.total_minutes == 120

    def test_spring_forward_skips_the_missing_hour(self, monday_tiers: TierTable) -> None:
        # 01:00 EST -> 04:00 EDT: two real hours on a three-hour-looking wall clock
        entries = [
            TimeEntry(
                start=datetime(2024, 3, 10, 6, 0, tzinfo=timezone.utc),
                end=datetime(2024, 3, 10, 8, 0, tzinfo=timezone.utc),
            )
        ]
        billable = compute_billable_hours(entries, monday_tiers, Decimal("100"), False, tax_rate="0")
        assert sum(line.minutes for line in billable.lines) == 120
        assert billable.total == Decimal("200.00")

    def test_last_end_rounds_on_local_clock(self, monday_tiers: TierTable) -> None:
        entries = [
            TimeEntry(
                start=datetime(2024, 3, 10, 6, 0, tzinfo=timezone.utc),
                end=datetime(2024, 3, 10, 7, 7, tzinfo=timezone.utc),
            )
        ]
        # 03:07 EDT rounds to 03:15 EDT (07:15Z)
        assert reconcile_actual_hours(entries, monday_tiers).total_minutes == 75


class TestComputeBillableHours:
    def test_lines_use_each_tiers_multiplier(self, monday_tiers: TierTable) -> None:
        billable = compute_billable_hours(_entries(), monday_tiers, Decimal("100"), False, tax_rate="0")
        assert [(line.tier_name, line.minutes, line.rate, line.cost) for line in billable.lines] == [
            ("Standard", 30, Decimal("100.00"), Decimal("50.00")),
            ("Premium", 45, Decimal("150.00"), Decimal("112.50")),
        ]
        assert billable.waived_minutes == 0
        assert billable.subtotal == Decimal("162.50")
        assert billable.total == Decimal("162.50")

    def test_first_request_waives_first_sixty_worked_minutes(
        self, monday_tiers: TierTable
    ) -> None:
        billable = compute_billable_hours(_entries(), monday_tiers, Decimal("100"), True, tax_rate="0")
        assert billable.waived_minutes == 60
        assert billable.waived_hours == 1
        assert [(line.tier_name, line.minutes, line.cost) for line in billable.lines] == [
            ("Premium", 15, Decimal("37.50")),
        ]
        assert billable.hours_by_tier() == {"Premium": Fraction(1, 4)}

    def test_short_first_request_is_fully_waived(self, monday_tiers: TierTable) -> None:
        entries = [(datetime(2024, 1, 1, 10, 0), datetime(2024, 1, 1, 10, 20))]
        billable = compute_billable_hours(entries, monday_tiers, Decimal("100"), True, tax_rate="0")
        assert billable.waived_minutes == 30
        assert billable.lines == ()
        assert billable.total == Decimal("0.00")

    def test_tax_applied_to_subtotal(self, monday_tiers: TierTable) -> None:
        billable = compute_billable_hours(
            _entries(), monday_tiers, Decimal("100"), False, tax_rate=Decimal("0.1")
        )
        assert billable.tax_amount == Decimal("16.25")
        assert billable.total == Decimal("178.75")

    def test_tax_rate_defaults_to_config(
        self, monkeypatch: pytest.MonkeyPatch, monday_tiers: TierTable
    ) -> None:
        monkeypatch.setattr(config, "invoice_tax_rate", "0.08", raising=False)
        billable = compute_billable_hours(_entries(), monday_tiers, Decimal("100"), False)
        assert billable.tax_rate == Decimal("0.08")
        assert billable.tax_amount == Decimal("13.00")
