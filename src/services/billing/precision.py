"""
Precision helpers for billing calculations.

We standardize money arithmetic with `Decimal` and quantize to cents at every
block boundary. Durations are exact rationals (`Fraction` of an hour) so that
block hours always sum to the interval duration without drift.

Notes:
- `Decimal` context precision (`DECIMAL_CONTEXT_PRECISION`) is **significant digits**,
  not "decimal places".
- We keep these as constants (not runtime-configurable) to avoid drift between
  environments during invoice reconciliation.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, localcontext
from fractions import Fraction

# Decimal context precision (significant digits)
DECIMAL_CONTEXT_PRECISION = 28

# Money precision (cents)
MONEY_PRECISION = 2
# Hours shown on invoices / audit trail
HOURS_DISPLAY_PRECISION = 2

# Billing increments (minutes)
SEGMENT_MINUTES = 30  # scheduled estimate granularity
ACTUAL_ROUNDING_MINUTES = 15  # last worked entry is rounded up to this boundary
FIRST_REQUEST_FREE_MINUTES = 60  # promotional free duration for first-time clients

ZERO = Decimal("0")


def to_decimal(value: float | int | str | Decimal | Fraction | None) -> Decimal:
    """Convert values to Decimal safely (float via str to avoid binary artifacts)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, Fraction):
        with localcontext() as ctx:
            ctx.prec = DECIMAL_CONTEXT_PRECISION
            return Decimal(value.numerator) / Decimal(value.denominator)
    return Decimal(str(value))


def quantize_decimal(value: Decimal, *, precision: int) -> Decimal:
    """Quantize a Decimal to the given number of decimal places (ROUND_HALF_UP)."""
    quantizer = Decimal(10) ** -precision
    with localcontext() as ctx:
        ctx.prec = DECIMAL_CONTEXT_PRECISION
        return value.quantize(quantizer, rounding=ROUND_HALF_UP)


def quantize_money(value: Decimal) -> Decimal:
    """Quantize to cents."""
    return quantize_decimal(value, precision=MONEY_PRECISION)


def quantize_hours(value: Fraction | Decimal) -> Decimal:
    """Quantize an hour amount for display."""
    return quantize_decimal(to_decimal(value), precision=HOURS_DISPLAY_PRECISION)


def minutes_to_hours(minutes: int) -> Fraction:
    return Fraction(minutes, 60)


def money_for(hours: Fraction, rate: Decimal, multiplier: Decimal = Decimal("1")) -> Decimal:
    """
    Cost of `hours` at `rate * multiplier`, rounded to cents.

    The product is formed before dividing by the hour denominator so a 20-minute
    span at 100/h is 33.33, not the sum of three rounded thirds.
    """
    with localcontext() as ctx:
        ctx.prec = DECIMAL_CONTEXT_PRECISION
        raw = Decimal(hours.numerator) * rate * multiplier / Decimal(hours.denominator)
    return quantize_money(raw)


def clamp_non_negative(value: Decimal) -> Decimal:
    return value if value > ZERO else quantize_money(ZERO)
