"""Prometheus counters for the billing domain."""

from __future__ import annotations

from prometheus_client import Counter

billing_estimates_total = Counter(
    "billing_estimates_total",
    "Scheduled cost estimates by outcome",
    ["status"],
)

billing_snapshot_writes_total = Counter(
    "billing_snapshot_writes_total",
    "Invoice billing snapshot write attempts by result",
    ["result"],
)

billing_invariant_violation_total = Counter(
    "billing_invariant_violation_total",
    "Billing invariant violations detected after calculation (should stay at 0)",
    ["check"],
)
