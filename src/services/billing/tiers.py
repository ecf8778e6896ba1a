"""
Rate tiers (Standard / Premium / Emergency hours).

A `RateTier` is a validated value object: malformed rows are rejected here, at
the repository boundary, so the calculation engine never defends against them.

Day-of-week convention follows the stored schedule: 0 = Sunday ... 6 = Saturday.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal
from typing import Any, Iterable, Sequence

from src.services.billing.precision import to_decimal
from src.services.billing.ranges import SpanKeys, adjacency_issues, find_containing, sort_spans

DEFAULT_TIER_NAME = "Standard"
DEFAULT_MULTIPLIER = Decimal("1.0")

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class InvalidRateTierError(ValueError):
    """A single tier row cannot be turned into a RateTier."""


class InvalidTierTableError(ValueError):
    """Tiers are individually valid but conflict with each other."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def day_of_week_for(value: date) -> int:
    """Sunday-based day index (date.weekday() is Monday-based)."""
    return (value.weekday() + 1) % 7


def parse_time(value: time | str) -> time:
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value).strip())
    except ValueError as e:
        raise InvalidRateTierError(f"Invalid time value: {value!r}") from e


@dataclass(frozen=True)
class RateTier:
    name: str
    level: int
    day_of_week: int
    time_start: time
    time_end: time  # exclusive
    multiplier: Decimal
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "multiplier", to_decimal(self.multiplier))
        if not (self.name or "").strip():
            raise InvalidRateTierError("Tier name is required")
        if not 0 <= int(self.day_of_week) <= 6:
            raise InvalidRateTierError(
                f"Tier {self.name!r}: day_of_week must be 0..6, got {self.day_of_week}"
            )
        if int(self.level) < 1:
            raise InvalidRateTierError(f"Tier {self.name!r}: level must be >= 1")
        if self.time_start >= self.time_end:
            raise InvalidRateTierError(
                f"Tier {self.name!r}: time_start {self.time_start} must be before "
                f"time_end {self.time_end}"
            )
        if self.multiplier <= 0:
            raise InvalidRateTierError(
                f"Tier {self.name!r}: multiplier must be positive, got {self.multiplier}"
            )

    @classmethod
    def from_mapping(cls, raw: dict[str, Any]) -> RateTier:
        """
        Build from a loosely typed row/dict.

        Accepts both the engine field names and the stored column names
        (`tier_name`, `tier_level`, `rate_multiplier`).
        """
        try:
            return cls(
                name=str(raw.get("name") or raw.get("tier_name") or "").strip(),
                level=int(raw.get("level") or raw.get("tier_level") or 1),
                day_of_week=int(raw["day_of_week"]),
                time_start=parse_time(raw["time_start"]),
                time_end=parse_time(raw["time_end"]),
                multiplier=to_decimal(raw.get("multiplier", raw.get("rate_multiplier", "1.0"))),
                description=raw.get("description"),
            )
        except (KeyError, TypeError, ArithmeticError) as e:
            raise InvalidRateTierError(f"Malformed tier row: {raw!r}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier_name": self.name,
            "tier_level": self.level,
            "day_of_week": self.day_of_week,
            "time_start": self.time_start.isoformat(),
            "time_end": self.time_end.isoformat(),
            "rate_multiplier": str(self.multiplier),
            "description": self.description,
        }


TIER_SPAN = SpanKeys[RateTier](
    start=lambda t: t.time_start,
    end=lambda t: t.time_end,
    inclusive_end=False,
)


@dataclass(frozen=True)
class TierMatch:
    """
    Result of a tier lookup.

    `tier is None` marks the implicit default (no configured tier covers the
    instant). An explicitly configured "Standard x1.0" tier is NOT default.
    """

    tier_name: str
    multiplier: Decimal
    tier: RateTier | None = None

    @property
    def is_default(self) -> bool:
        return self.tier is None

    @property
    def key(self) -> tuple[str, Decimal]:
        return (self.tier_name, self.multiplier)

    @classmethod
    def of(cls, tier: RateTier) -> TierMatch:
        return cls(tier_name=tier.name, multiplier=tier.multiplier, tier=tier)


DEFAULT_TIER_MATCH = TierMatch(tier_name=DEFAULT_TIER_NAME, multiplier=DEFAULT_MULTIPLIER)


def resolve_tier(day_of_week: int, time_of_day: time, tiers_for_day: Iterable[RateTier]) -> TierMatch:
    """
    Tier owning `time_of_day` on `day_of_week`.

    Windows are half-open: a tier ending at 17:00 does not own 17:00. Unmatched
    instants fall back to DEFAULT_TIER_MATCH; this never raises.
    """
    candidates = (t for t in tiers_for_day if t.day_of_week == day_of_week)
    tier = find_containing(candidates, time_of_day, TIER_SPAN)
    if tier is None:
        return DEFAULT_TIER_MATCH
    return TierMatch.of(tier)


@dataclass(frozen=True)
class TierTable:
    """Validated weekly tier schedule. Build with `TierTable.from_tiers()`."""

    by_day: dict[int, tuple[RateTier, ...]] = field(default_factory=dict)

    @classmethod
    def from_tiers(cls, tiers: Iterable[RateTier]) -> TierTable:
        grouped: dict[int, list[RateTier]] = {}
        for tier in tiers:
            grouped.setdefault(tier.day_of_week, []).append(tier)

        errors: list[str] = []
        by_day: dict[int, tuple[RateTier, ...]] = {}
        for day in sorted(grouped):
            ordered = sort_spans(grouped[day], TIER_SPAN)
            for issue in adjacency_issues(ordered, TIER_SPAN):
                if issue.kind != "overlap":
                    continue  # gaps resolve to the default tier
                errors.append(
                    f"{DAY_NAMES[day]}: tier {issue.before.name!r} "
                    f"({issue.before.time_start}-{issue.before.time_end}) overlaps "
                    f"{issue.after.name!r} ({issue.after.time_start}-{issue.after.time_end})"
                )
            by_day[day] = tuple(ordered)

        if errors:
            raise InvalidTierTableError(errors)
        return cls(by_day=by_day)

    @classmethod
    def from_dicts(cls, rows: Iterable[dict[str, Any]]) -> TierTable:
        return cls.from_tiers(RateTier.from_mapping(r) for r in rows)

    def for_day(self, day_of_week: int) -> tuple[RateTier, ...]:
        return self.by_day.get(day_of_week, ())

    def resolve(self, day_of_week: int, time_of_day: time) -> TierMatch:
        return resolve_tier(day_of_week, time_of_day, self.for_day(day_of_week))

    @property
    def tiers(self) -> list[RateTier]:
        return [t for day in sorted(self.by_day) for t in self.by_day[day]]

    def to_list(self) -> list[dict[str, Any]]:
        return [t.to_dict() for t in self.tiers]

    def __len__(self) -> int:
        return sum(len(v) for v in self.by_day.values())


def as_tier_table(tiers: TierTable | Sequence[RateTier]) -> TierTable:
    if isinstance(tiers, TierTable):
        return tiers
    return TierTable.from_tiers(tiers)


def _weekday_tiers(day: int) -> list[RateTier]:
    name = DAY_NAMES[day]
    return [
        RateTier("Standard", 1, day, time(8), time(17), Decimal("1.00"), f"Standard business hours - {name}"),
        RateTier("Premium", 2, day, time(6), time(8), Decimal("1.25"), f"Early morning premium hours - {name}"),
        RateTier("Premium", 2, day, time(17), time(22), Decimal("1.25"), f"Evening premium hours - {name}"),
        RateTier("Emergency", 3, day, time(22), time(23, 59, 59), Decimal("1.75"), f"Late night emergency hours - {name}"),
        RateTier("Emergency", 3, day, time(0), time(6), Decimal("1.75"), f"Overnight emergency hours - {name}"),
    ]


def _weekend_tiers(day: int) -> list[RateTier]:
    name = DAY_NAMES[day]
    return [
        RateTier("Premium", 2, day, time(8), time(22), Decimal("1.50"), f"Weekend premium hours - {name}"),
        RateTier("Emergency", 3, day, time(22), time(23, 59, 59), Decimal("2.00"), f"Late night emergency hours - {name}"),
        RateTier("Emergency", 3, day, time(0), time(8), Decimal("2.00"), f"Overnight emergency hours - {name}"),
    ]


def default_tier_table() -> TierTable:
    """Seeded schedule used when no tiers have been configured yet."""
    tiers: list[RateTier] = []
    for day in range(7):
        tiers.extend(_weekend_tiers(day) if day in (0, 6) else _weekday_tiers(day))
    return TierTable.from_tiers(tiers)
