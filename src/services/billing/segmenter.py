"""
Scheduled interval -> price blocks.

The interval is walked in SEGMENT_MINUTES increments. Each increment takes the
tier in effect at its starting instant; adjacent increments with the same
(tier_name, multiplier) are folded into one PriceBlock.

A trailing increment shorter than SEGMENT_MINUTES (e.g. 16:00-16:45) keeps its
real length, so block hours always add up to the interval duration.

An end earlier than the start means the work runs past midnight; minutes past
midnight are priced against the next day's tiers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import Sequence

from src.core.logger import logger
from src.services.billing.precision import SEGMENT_MINUTES, money_for, to_decimal
from src.services.billing.schema import PriceBlock
from src.services.billing.tiers import RateTier, TierMatch, TierTable, as_tier_table, day_of_week_for

MINUTES_PER_DAY = 24 * 60


def coerce_date(value: date | datetime | str | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    # accept full ISO timestamps as well as plain dates
    return date.fromisoformat(text[:10])


def coerce_time(value: time | str | None) -> time | None:
    if value is None:
        return None
    if isinstance(value, time):
        return value
    text = str(value).strip()
    if not text:
        return None
    return time.fromisoformat(text)


def coerce_rate(value: Decimal | float | int | str | None) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        rate = to_decimal(value)
    except (InvalidOperation, ValueError):
        return None
    # an unset rate is stored as 0
    if not rate.is_finite() or rate == 0:
        return None
    return rate


def minute_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def time_at_minute(minute: int) -> time:
    return time(minute // 60, minute % 60)


def interval_minutes(start: time, end: time) -> tuple[int, int]:
    """(start, end) minute offsets from the start day's midnight; end may exceed MINUTES_PER_DAY."""
    start_minute = minute_of_day(start)
    end_minute = minute_of_day(end)
    if end_minute < start_minute:
        end_minute += MINUTES_PER_DAY
    return start_minute, end_minute


@dataclass
class _OpenBlock:
    match: TierMatch
    minutes: int

    def close(self, base_rate: Decimal) -> PriceBlock:
        hours = Fraction(self.minutes, 60)
        return PriceBlock(
            tier_name=self.match.tier_name,
            multiplier=self.match.multiplier,
            minutes=self.minutes,
            cost=money_for(hours, base_rate, self.match.multiplier),
        )


def segment_minutes(
    day_of_week: int,
    start_minute: int,
    end_minute: int,
    base_rate: Decimal,
    tiers: TierTable,
    *,
    step: int = SEGMENT_MINUTES,
) -> list[PriceBlock]:
    """Core walk over minute offsets from the start day's midnight. Empty when end <= start."""
    blocks: list[PriceBlock] = []
    current: _OpenBlock | None = None

    cursor = start_minute
    while cursor < end_minute:
        length = min(step, end_minute - cursor)
        days, minute = divmod(cursor, MINUTES_PER_DAY)
        match = tiers.resolve((day_of_week + days) % 7, time_at_minute(minute))
        if current is not None and current.match.key == match.key:
            current.minutes += length
        else:
            if current is not None:
                blocks.append(current.close(base_rate))
            current = _OpenBlock(match=match, minutes=length)
        cursor += step

    if current is not None:
        blocks.append(current.close(base_rate))
    return blocks


def segment(
    date_value: date | datetime | str | None,
    time_start: time | str | None,
    time_end: time | str | None,
    base_rate: Decimal | float | int | str | None,
    tiers: TierTable | Sequence[RateTier],
) -> list[PriceBlock] | None:
    """
    Price blocks for a scheduled interval starting on `date_value`.

    Returns None ("no estimate") when a required input is missing. An end
    earlier than the start crosses midnight; a zero-length interval returns [].
    """
    day = coerce_date(date_value)
    start = coerce_time(time_start)
    end = coerce_time(time_end)
    rate = coerce_rate(base_rate)
    if day is None or start is None or end is None or rate is None:
        return None

    start_minute, end_minute = interval_minutes(start, end)
    if end_minute > MINUTES_PER_DAY:
        logger.debug("Interval crosses midnight: {} {}-{}", day, start, end)

    return segment_minutes(
        day_of_week_for(day),
        start_minute,
        end_minute,
        rate,
        as_tier_table(tiers),
    )
