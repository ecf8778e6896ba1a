"""
Graduated (volume-tiered) per-unit pricing.

Units are billed range by range: with ranges 1-2 @ 0.00 and 3-10 @ 9.99, five
devices cost 2 x 0.00 + 3 x 9.99 = 29.97. Used for subscription device seats but
nothing here is device specific.

`calculate_graduated_cost()` assumes the ranges already passed
`validate_ranges()`; callers reject invalid sets before they reach it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Literal, Sequence

from src.core.logger import logger
from src.services.billing.precision import ZERO, clamp_non_negative, quantize_money, to_decimal
from src.services.billing.ranges import SpanKeys, adjacency_issues, sort_spans

UNLIMITED: Literal["unlimited"] = "unlimited"
MaxUnits = int | Literal["unlimited"]


@dataclass(frozen=True)
class PricingRange:
    start: int  # inclusive
    end: int | None  # inclusive; None = unbounded
    unit_price: Decimal
    description: str | None = None

    @property
    def label(self) -> str:
        return f"{self.start}-{self.end}" if self.end is not None else f"{self.start}+"

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "price": str(self.unit_price),
            "description": self.description,
        }


PRICING_SPAN = SpanKeys[PricingRange](
    start=lambda r: r.start,
    end=lambda r: r.end,
    inclusive_end=True,
    next_start=lambda end: end + 1,
)


@dataclass(frozen=True)
class GraduatedLine:
    range_label: str
    unit_count: int
    unit_price: Decimal
    subtotal: Decimal
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "range": self.range_label,
            "units": self.unit_count,
            "unit_price": str(self.unit_price),
            "subtotal": str(self.subtotal),
            "description": self.description,
        }


@dataclass(frozen=True)
class GraduatedCostResult:
    total_cost: Decimal
    breakdown: tuple[GraduatedLine, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_cost": str(self.total_cost),
            "breakdown": [line.to_dict() for line in self.breakdown],
        }


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PricingSummary:
    plan: str
    unit_count: int
    max_units: MaxUnits
    total_cost: Decimal
    currency: str
    breakdown: tuple[GraduatedLine, ...]
    formatted_breakdown: str

    @property
    def is_at_limit(self) -> bool:
        return self.max_units != UNLIMITED and self.unit_count >= int(self.max_units)

    @property
    def units_remaining(self) -> int | None:
        if self.max_units == UNLIMITED:
            return None
        return max(0, int(self.max_units) - self.unit_count)


def calculate_graduated_cost(unit_count: int, ranges: Sequence[PricingRange]) -> GraduatedCostResult:
    if not ranges:
        logger.warning("No pricing ranges provided, returning 0.00")
        return GraduatedCostResult(total_cost=quantize_money(ZERO))
    if unit_count <= 0:
        return GraduatedCostResult(total_cost=quantize_money(ZERO))

    lines: list[GraduatedLine] = []
    for r in sort_spans(ranges, PRICING_SPAN):
        if unit_count < r.start:
            break
        last = unit_count if r.end is None else min(unit_count, r.end)
        units = last - r.start + 1
        if units <= 0:
            continue
        lines.append(
            GraduatedLine(
                range_label=f"{r.start}-{last}",
                unit_count=units,
                unit_price=r.unit_price,
                subtotal=quantize_money(r.unit_price * units),
                description=r.description or f"Units {r.label}",
            )
        )

    total = clamp_non_negative(quantize_money(sum((line.subtotal for line in lines), ZERO)))
    return GraduatedCostResult(total_cost=total, breakdown=tuple(lines))


def max_units_for_ranges(ranges: Sequence[PricingRange]) -> MaxUnits:
    """Highest billable unit; UNLIMITED when the top range is open-ended, 0 when empty."""
    if not ranges:
        return 0
    if any(r.end is None for r in ranges):
        return UNLIMITED
    return max(int(r.end) for r in ranges if r.end is not None)


def validate_ranges(ranges: Sequence[PricingRange]) -> ValidationResult:
    if not ranges:
        return ValidationResult(valid=False, errors=["Pricing ranges cannot be empty"])

    errors: list[str] = []
    for index, r in enumerate(ranges):
        if r.start < 1:
            errors.append(f"Range {index}: 'start' must be a positive number")
        if r.end is not None and r.end < r.start:
            errors.append(f"Range {index}: 'end' must be >= 'start'")
        if r.unit_price < 0:
            errors.append(f"Range {index}: 'price' must be a non-negative number")

    # positions in the caller's list, so every "range N" names the same row
    order = sorted(range(len(ranges)), key=lambda k: PRICING_SPAN.start(ranges[k]))
    ordered = [ranges[k] for k in order]
    if ordered[0].start != 1:
        errors.append(f"First range must start at 1, got {ordered[0].start}")

    for issue in adjacency_issues(ordered, PRICING_SPAN):
        i, j = order[issue.before_index], order[issue.after_index]
        if issue.kind == "gap":
            errors.append(
                f"Gap detected between range {i} and {j}: units "
                f"{PRICING_SPAN.boundary_after(issue.before)}-{issue.after.start - 1} "
                "have no pricing"
            )
        else:
            errors.append(
                f"Overlap detected between range {i} and {j}: "
                f"{issue.before.label} and {issue.after.label}"
            )

    return ValidationResult(valid=not errors, errors=errors)


def format_price_breakdown(breakdown: Iterable[GraduatedLine], currency: str = "USD") -> str:
    lines = list(breakdown)
    if not lines:
        return "No units"
    symbol = "$" if currency == "USD" else currency
    out: list[str] = []
    for line in lines:
        price_text = (
            "Free" if line.unit_price == 0 else f"{symbol}{quantize_money(line.unit_price)}/unit"
        )
        out.append(
            f"Units {line.range_label}: {line.unit_count} x {price_text} = {symbol}{line.subtotal}"
        )
    return "\n".join(out)


def summarize_graduated_pricing(
    plan: str,
    unit_count: int,
    ranges: Sequence[PricingRange],
    currency: str = "USD",
) -> PricingSummary:
    result = calculate_graduated_cost(unit_count, ranges)
    return PricingSummary(
        plan=plan,
        unit_count=unit_count,
        max_units=max_units_for_ranges(ranges),
        total_cost=result.total_cost,
        currency=currency,
        breakdown=result.breakdown,
        formatted_breakdown=format_price_breakdown(result.breakdown, currency),
    )


def parse_pricing_ranges(raw: Any) -> list[PricingRange]:
    """
    Boundary conversion of stored JSON (`[{start, end, price, description}, ...]`).

    Raises ValueError for rows that cannot be read; contiguity is left to
    `validate_ranges()`.
    """
    if not isinstance(raw, list):
        raise ValueError("Pricing ranges must be a list")
    out: list[PricingRange] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ValueError(f"Range {index}: expected an object, got {type(item).__name__}")
        try:
            end_raw = item.get("end")
            out.append(
                PricingRange(
                    start=int(item["start"]),
                    end=None if end_raw is None else int(end_raw),
                    unit_price=to_decimal(item.get("unit_price", item.get("price", 0))),
                    description=item.get("description"),
                )
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise ValueError(f"Range {index}: malformed pricing range {item!r}") from e
    return out
