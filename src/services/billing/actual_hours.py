"""
Actual worked time -> per-tier minutes.

Worked time comes from the technician's clock-in/out log as one or more disjoint
entries. Each entry is walked minute by minute against the weekly tier table.

Rounding rule: only the LAST entry's end is rounded up to the next
ACTUAL_ROUNDING_MINUTES boundary (stopping at 2:07 bills through 2:15); every
other entry uses its stored end verbatim.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from fractions import Fraction
from typing import Iterable, Mapping, Sequence
from zoneinfo import ZoneInfo

from src.config.settings import config
from src.services.billing.precision import (
    ACTUAL_ROUNDING_MINUTES,
    FIRST_REQUEST_FREE_MINUTES,
    ZERO,
    clamp_non_negative,
    money_for,
    quantize_money,
    to_decimal,
)
from src.services.billing.schema import (
    ActualHoursBreakdown,
    BillableHours,
    BillableLine,
    TierHours,
    TimeEntry,
)
from src.services.billing.tiers import RateTier, TierMatch, TierTable, as_tier_table, day_of_week_for

ONE_MINUTE = timedelta(minutes=1)

TimeEntryLike = TimeEntry | tuple[datetime, datetime]


def round_up_to_boundary(value: datetime, minutes: int = ACTUAL_ROUNDING_MINUTES) -> datetime:
    """Ceil `value` to the next `minutes` boundary within the hour (no-op when already on one)."""
    floored = value.replace(minute=value.minute - value.minute % minutes, second=0, microsecond=0)
    if floored == value:
        return value
    return floored + timedelta(minutes=minutes)


def _localize(value: datetime) -> datetime:
    # naive timestamps are already wall-clock time in the business zone
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(config.billing_timezone))


def _elapsed_clock(value: datetime) -> datetime:
    # aware values step in UTC so a DST change neither drops nor repeats minutes
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)


def normalize_entries(time_entries: Iterable[TimeEntryLike]) -> list[TimeEntry]:
    entries = [e if isinstance(e, TimeEntry) else TimeEntry(start=e[0], end=e[1]) for e in time_entries]
    return sorted(entries, key=lambda e: e.start)


def billing_windows(entries: Sequence[TimeEntry]) -> list[tuple[datetime, datetime]]:
    """
    (start, end) pairs to walk, with the last end rounded up.

    Aware entries come back in UTC. The rounding boundary is applied on the
    local wall clock before converting back.
    """
    windows: list[tuple[datetime, datetime]] = []
    for i, entry in enumerate(entries):
        end = entry.end
        if i == len(entries) - 1:
            end = round_up_to_boundary(_localize(end))
        windows.append((_elapsed_clock(entry.start), _elapsed_clock(end)))
    return windows


def walk_minutes(entries: Sequence[TimeEntry], tiers: TierTable) -> list[TierMatch]:
    """Tier of every worked minute, in chronological order."""
    minutes: list[TierMatch] = []
    for start, end in billing_windows(entries):
        cursor = start
        while cursor < end:
            local = _localize(cursor)
            minutes.append(tiers.resolve(day_of_week_for(local.date()), local.time()))
            cursor += ONE_MINUTE
    return minutes


def reconcile_actual_hours(
    time_entries: Iterable[TimeEntryLike],
    tiers_for_week: TierTable | Sequence[RateTier],
    *,
    billed_hours: Mapping[str, Fraction | Decimal] | None = None,
) -> ActualHoursBreakdown:
    """
    Tally actual worked minutes per tier name.

    `billed_hours` (tier name -> hours already stored on the invoice) is shown
    next to the actual figures; the two may differ because of the waiver and
    rounding, which is expected.
    """
    entries = normalize_entries(time_entries)
    table = as_tier_table(tiers_for_week)

    counts: dict[str, int] = {}
    for match in walk_minutes(entries, table):
        counts[match.tier_name] = counts.get(match.tier_name, 0) + 1

    billed = dict(billed_hours or {})
    for name in billed:
        counts.setdefault(name, 0)

    tiers = tuple(
        TierHours(
            tier_name=name,
            actual_minutes=minutes,
            rounded_hours=to_decimal(billed[name]) if name in billed else None,
        )
        for name, minutes in counts.items()
    )
    return ActualHoursBreakdown(time_entries=tuple(entries), tiers=tiers)


def compute_billable_hours(
    time_entries: Iterable[TimeEntryLike],
    tiers_for_week: TierTable | Sequence[RateTier],
    base_rate: Decimal | float | int | str,
    is_first_request: bool,
    *,
    tax_rate: Decimal | float | str | None = None,
) -> BillableHours:
    """
    Invoice lines from worked time.

    - first-time clients get the first FIRST_REQUEST_FREE_MINUTES chronological
      minutes waived, whatever tier they fall in
    - remaining minutes are grouped per (tier_name, multiplier) and billed at
      that tier's own multiplier
    """
    rate = to_decimal(base_rate)
    tax = to_decimal(config.invoice_tax_rate if tax_rate is None else tax_rate)
    minutes = walk_minutes(normalize_entries(time_entries), as_tier_table(tiers_for_week))

    waived = min(len(minutes), FIRST_REQUEST_FREE_MINUTES) if is_first_request else 0
    grouped: dict[tuple[str, Decimal], int] = {}
    for match in minutes[waived:]:
        grouped[match.key] = grouped.get(match.key, 0) + 1

    lines = tuple(
        BillableLine(
            tier_name=name,
            multiplier=multiplier,
            minutes=count,
            rate=quantize_money(rate * multiplier),
            cost=money_for(Fraction(count, 60), rate, multiplier),
        )
        for (name, multiplier), count in grouped.items()
    )
    subtotal = quantize_money(sum((line.cost for line in lines), ZERO))
    tax_amount = quantize_money(subtotal * tax)
    return BillableHours(
        base_rate=rate,
        lines=lines,
        waived_minutes=waived,
        subtotal=subtotal,
        tax_rate=tax,
        tax_amount=tax_amount,
        total=clamp_non_negative(quantize_money(subtotal + tax_amount)),
    )
