"""
Time-tiered billing engine.

Pure calculation entry points (no DB access):
    estimate_scheduled_cost / reconcile_actual_hours / compute_billable_hours
    calculate_graduated_cost / max_units_for_ranges / validate_ranges

DB-backed helpers live in `repository`, `snapshot` and `service`.
"""

from src.services.billing.actual_hours import compute_billable_hours, reconcile_actual_hours
from src.services.billing.estimate import estimate_scheduled_cost
from src.services.billing.graduated import (
    UNLIMITED,
    GraduatedCostResult,
    PricingRange,
    ValidationResult,
    calculate_graduated_cost,
    max_units_for_ranges,
    validate_ranges,
)
from src.services.billing.schema import (
    ActualHoursBreakdown,
    CostEstimate,
    InvoiceSnapshot,
    PriceBlock,
    TimeEntry,
)
from src.services.billing.tiers import (
    DEFAULT_TIER_MATCH,
    RateTier,
    TierMatch,
    TierTable,
    resolve_tier,
)

__all__ = [
    "ActualHoursBreakdown",
    "CostEstimate",
    "DEFAULT_TIER_MATCH",
    "GraduatedCostResult",
    "InvoiceSnapshot",
    "PriceBlock",
    "PricingRange",
    "RateTier",
    "TierMatch",
    "TierTable",
    "TimeEntry",
    "UNLIMITED",
    "ValidationResult",
    "calculate_graduated_cost",
    "compute_billable_hours",
    "estimate_scheduled_cost",
    "max_units_for_ranges",
    "reconcile_actual_hours",
    "resolve_tier",
    "validate_ranges",
]
