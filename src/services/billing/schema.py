"""
Billing schema (stable contracts)

These dataclasses are what the invoicing collaborator stores verbatim for
auditability (`invoice_billing_snapshots`). Once written they are never
recomputed, so their `to_dict()` shape is a persisted contract: add keys, never
rename or drop them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from fractions import Fraction
from typing import Any

from src.services.billing.precision import quantize_hours

BILLING_SNAPSHOT_SCHEMA_VERSION = "1.0"
ENGINE_VERSION = "1.0"


def _hours_out(hours: Fraction) -> float:
    return float(hours)


def _money_out(value: Decimal) -> str:
    return str(value)


@dataclass(frozen=True)
class PriceBlock:
    """Contiguous span billed at one tier. cost == hours * base_rate * multiplier (cents)."""

    tier_name: str
    multiplier: Decimal
    minutes: int
    cost: Decimal

    @property
    def hours(self) -> Fraction:
        return Fraction(self.minutes, 60)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier_name": self.tier_name,
            "multiplier": str(self.multiplier),
            "hours": _hours_out(self.hours),
            "cost": _money_out(self.cost),
        }


@dataclass(frozen=True)
class DiscountBlock:
    """Portion of a PriceBlock credited by the first-hour promotion."""

    tier_name: str
    multiplier: Decimal
    minutes: int
    discount: Decimal

    @property
    def hours(self) -> Fraction:
        return Fraction(self.minutes, 60)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier_name": self.tier_name,
            "multiplier": str(self.multiplier),
            "hours": _hours_out(self.hours),
            "discount": _money_out(self.discount),
        }


@dataclass(frozen=True)
class CostEstimate:
    """
    Scheduled-interval estimate.

    Invariants:
    - sum(b.hours for b in breakdown) == duration_hours
    - total == max(0, subtotal - (first_hour_discount or 0))
    - first_hour_discount is set only when is_first_request and duration_hours >= 1
    """

    base_rate: Decimal
    rate_category_name: str
    duration_hours: Fraction
    subtotal: Decimal
    total: Decimal
    breakdown: tuple[PriceBlock, ...] = ()
    first_hour_discount: Decimal | None = None
    first_hour_breakdown: tuple[DiscountBlock, ...] | None = None
    is_first_request: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_rate": _money_out(self.base_rate),
            "rate_category_name": self.rate_category_name,
            "duration_hours": _hours_out(self.duration_hours),
            "subtotal": _money_out(self.subtotal),
            "first_hour_discount": (
                _money_out(self.first_hour_discount)
                if self.first_hour_discount is not None
                else None
            ),
            "first_hour_breakdown": (
                [b.to_dict() for b in self.first_hour_breakdown]
                if self.first_hour_breakdown is not None
                else None
            ),
            "total": _money_out(self.total),
            "breakdown": [b.to_dict() for b in self.breakdown],
            "is_first_request": self.is_first_request,
        }


@dataclass(frozen=True)
class TimeEntry:
    """One clock-in/clock-out pair from the technician's log."""

    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"start_time": self.start.isoformat(), "end_time": self.end.isoformat()}


@dataclass(frozen=True)
class TierHours:
    """Actual worked minutes for one tier name, next to the billed (rounded) hours."""

    tier_name: str
    actual_minutes: int
    rounded_hours: Decimal | None = None

    @property
    def actual_hours(self) -> Decimal:
        return quantize_hours(Fraction(self.actual_minutes, 60))

    def to_dict(self) -> dict[str, Any]:
        return {
            "actual_minutes": self.actual_minutes,
            "actual_hours": str(self.actual_hours),
            "rounded_hours": (
                str(quantize_hours(self.rounded_hours)) if self.rounded_hours is not None else None
            ),
        }


@dataclass(frozen=True)
class ActualHoursBreakdown:
    """Audit trail: actual contiguous work time per tier (may differ from billed hours)."""

    time_entries: tuple[TimeEntry, ...] = ()
    tiers: tuple[TierHours, ...] = ()

    @property
    def total_minutes(self) -> int:
        return sum(t.actual_minutes for t in self.tiers)

    def for_tier(self, tier_name: str) -> TierHours | None:
        for t in self.tiers:
            if t.tier_name == tier_name:
                return t
        return None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"timeEntries": [e.to_dict() for e in self.time_entries]}
        # keyed by lowercase tier name, as shown on the invoice ("standard", "premium", ...)
        for t in self.tiers:
            out[t.tier_name.lower()] = t.to_dict()
        return out


@dataclass(frozen=True)
class BillableLine:
    """Invoice line for one tier (name + multiplier) after the first-hour waiver."""

    tier_name: str
    multiplier: Decimal
    minutes: int
    rate: Decimal
    cost: Decimal

    @property
    def hours(self) -> Fraction:
        return Fraction(self.minutes, 60)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier_name": self.tier_name,
            "multiplier": str(self.multiplier),
            "hours": str(quantize_hours(self.hours)),
            "rate": _money_out(self.rate),
            "cost": _money_out(self.cost),
        }


@dataclass(frozen=True)
class BillableHours:
    base_rate: Decimal
    lines: tuple[BillableLine, ...]
    waived_minutes: int
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total: Decimal

    @property
    def waived_hours(self) -> Fraction:
        return Fraction(self.waived_minutes, 60)

    def hours_by_tier(self) -> dict[str, Fraction]:
        out: dict[str, Fraction] = {}
        for line in self.lines:
            out[line.tier_name] = out.get(line.tier_name, Fraction(0)) + line.hours
        return out

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_rate": _money_out(self.base_rate),
            "lines": [line.to_dict() for line in self.lines],
            "waived_hours": str(quantize_hours(self.waived_hours)),
            "subtotal": _money_out(self.subtotal),
            "tax_rate": str(self.tax_rate),
            "tax_amount": _money_out(self.tax_amount),
            "total": _money_out(self.total),
        }


@dataclass(frozen=True)
class InvoiceSnapshot:
    """
    Frozen evidence of an invoice charge.

    - rate_tiers: the full tier table used (not a reference to live tiers)
    - cost_estimate: estimate at scheduling time (None when the request had no schedule)
    - actual_hours: reconciliation at completion time
    """

    rate_tiers: tuple[dict[str, Any], ...] = ()
    cost_estimate: CostEstimate | None = None
    actual_hours: ActualHoursBreakdown | None = None
    billable: BillableHours | None = None
    schema_version: str = BILLING_SNAPSHOT_SCHEMA_VERSION
    engine_version: str = ENGINE_VERSION
    calculated_at: str = ""  # ISO 8601

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "engine_version": self.engine_version,
            "calculated_at": self.calculated_at,
            "rate_tiers_snapshot": [dict(t) for t in self.rate_tiers],
            "original_cost_estimate": (
                self.cost_estimate.to_dict() if self.cost_estimate is not None else None
            ),
            "actual_hours_breakdown": (
                self.actual_hours.to_dict() if self.actual_hours is not None else None
            ),
            "billable_hours": self.billable.to_dict() if self.billable is not None else None,
        }
