"""
Scheduled cost estimate.

Pipeline: segment -> first-hour discount -> aggregate. The function is pure: the
same inputs (including the same tier table) always produce an equal estimate,
which is what makes a persisted estimate valid evidence later on.
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from fractions import Fraction
from typing import Sequence

from src.config.settings import config
from src.core.logger import logger
from src.core.metrics import billing_estimates_total, billing_invariant_violation_total
from src.services.billing.discount import allocate_first_hour_discount
from src.services.billing.precision import ZERO, clamp_non_negative, quantize_money
from src.services.billing.schema import CostEstimate, DiscountBlock, PriceBlock
from src.services.billing.segmenter import (
    coerce_date,
    coerce_rate,
    coerce_time,
    interval_minutes,
    segment,
)
from src.services.billing.tiers import RateTier, TierTable


def aggregate_cost(
    *,
    blocks: Sequence[PriceBlock],
    base_rate: Decimal,
    rate_category_name: str,
    duration_hours: Fraction,
    discount: Decimal,
    discount_breakdown: Sequence[DiscountBlock],
    is_first_request: bool,
) -> CostEstimate:
    """Sum quantized block costs into subtotal/total and package the estimate."""
    subtotal = quantize_money(sum((b.cost for b in blocks), ZERO))
    has_discount = bool(discount_breakdown)
    total = clamp_non_negative(quantize_money(subtotal - discount))
    return CostEstimate(
        base_rate=base_rate,
        rate_category_name=rate_category_name,
        duration_hours=duration_hours,
        subtotal=subtotal,
        total=total,
        breakdown=tuple(blocks),
        first_hour_discount=quantize_money(discount) if has_discount else None,
        first_hour_breakdown=tuple(discount_breakdown) if has_discount else None,
        is_first_request=is_first_request,
    )


def check_estimate_invariants(estimate: CostEstimate) -> list[str]:
    """Names of violated invariants (empty when consistent)."""
    violations: list[str] = []
    if sum((b.hours for b in estimate.breakdown), Fraction(0)) != estimate.duration_hours:
        violations.append("coverage")
    discount = estimate.first_hour_discount or ZERO
    if discount > estimate.subtotal:
        violations.append("discount_cap")
    if estimate.first_hour_breakdown is not None:
        if sum((b.hours for b in estimate.first_hour_breakdown), Fraction(0)) > 1:
            violations.append("discount_hours_cap")
    if estimate.total < ZERO:
        violations.append("non_negative_total")
    return violations


def estimate_scheduled_cost(
    date_value: date | datetime | str | None,
    time_start: time | str | None,
    time_end: time | str | None,
    base_rate: Decimal | float | int | str | None,
    is_first_request: bool,
    category_name: str | None,
    tiers_for_day: TierTable | Sequence[RateTier],
) -> CostEstimate | None:
    """
    Estimate the cost of a scheduled interval (an end before the start runs past midnight).

    Returns None when the request is incomplete (missing date, times or base
    rate); callers estimate draft requests and treat None as "no estimate yet".
    """
    day = coerce_date(date_value)
    start = coerce_time(time_start)
    end = coerce_time(time_end)
    rate = coerce_rate(base_rate)
    blocks = segment(day, start, end, rate, tiers_for_day)
    if blocks is None or start is None or end is None or rate is None:
        billing_estimates_total.labels(status="no_estimate").inc()
        return None

    start_minute, end_minute = interval_minutes(start, end)
    duration_hours = Fraction(end_minute - start_minute, 60)
    discount, discount_breakdown = allocate_first_hour_discount(
        blocks, rate, bool(is_first_request), duration_hours
    )

    estimate = aggregate_cost(
        blocks=blocks,
        base_rate=rate,
        rate_category_name=category_name or config.billing_default_category,
        duration_hours=duration_hours,
        discount=discount,
        discount_breakdown=discount_breakdown,
        is_first_request=bool(is_first_request),
    )

    violations = check_estimate_invariants(estimate)
    for check in violations:
        billing_invariant_violation_total.labels(check=check).inc()
    if violations:
        logger.warning(
            "Estimate invariant violation: date={}, interval={}-{}, checks={}",
            day,
            start,
            end,
            violations,
        )

    billing_estimates_total.labels(status="complete").inc()
    logger.debug(
        "Estimated {} blocks, subtotal={}, total={}",
        len(estimate.breakdown),
        estimate.subtotal,
        estimate.total,
    )
    return estimate
