"""
First-time client promotion: the first hour of service is free.

The free hour is taken from the start of the block sequence and credited at
each block's own multiplier, so a first hour that crosses from Standard into
Premium is discounted at both rates (pro-rated), not at a flat Standard rate.
"""

from __future__ import annotations

from decimal import Decimal
from fractions import Fraction
from typing import Sequence

from src.services.billing.precision import FIRST_REQUEST_FREE_MINUTES, ZERO, money_for
from src.services.billing.schema import DiscountBlock, PriceBlock


def allocate_first_hour_discount(
    blocks: Sequence[PriceBlock],
    base_rate: Decimal,
    is_first_request: bool,
    duration_hours: Fraction,
    *,
    free_minutes: int = FIRST_REQUEST_FREE_MINUTES,
) -> tuple[Decimal, list[DiscountBlock]]:
    """
    Returns (discount, breakdown).

    Inactive (0, []) unless is_first_request and the interval is at least as long
    as the free duration.
    """
    if not is_first_request or duration_hours < Fraction(free_minutes, 60):
        return ZERO, []

    breakdown: list[DiscountBlock] = []
    consumed = 0
    for block in blocks:
        if consumed >= free_minutes:
            break
        minutes = min(block.minutes, free_minutes - consumed)
        if minutes <= 0:
            continue
        breakdown.append(
            DiscountBlock(
                tier_name=block.tier_name,
                multiplier=block.multiplier,
                minutes=minutes,
                discount=(
                    block.cost
                    if minutes == block.minutes
                    else money_for(Fraction(minutes, 60), base_rate, block.multiplier)
                ),
            )
        )
        consumed += minutes

    discount = sum((b.discount for b in breakdown), ZERO)
    return discount, breakdown
