"""
Runtime settings.

Values are read once from environment variables at import time. Tests override
individual attributes with `monkeypatch.setattr(config, "...", value)`.

Notes:
- Numeric precision and billing increments are NOT configured here; they live in
  `src.services.billing.precision` as constants so estimates and invoices never
  drift between environments.
"""

from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


class Config:
    def __init__(self) -> None:
        self.environment = _env_str("ENVIRONMENT", "development")
        self.log_level = _env_str("LOG_LEVEL", "INFO").upper()

        # Zone used to read tz-aware worked timestamps (clock-in/out log).
        self.billing_timezone = _env_str("BILLING_TIMEZONE", "UTC")
        # Rate tier table cache (admin edits call RateTierRepository.invalidate()).
        self.billing_tier_cache_ttl_seconds = _env_int("BILLING_TIER_CACHE_TTL_SECONDS", 300)
        # Rate category label used when the business has none assigned.
        self.billing_default_category = _env_str("BILLING_DEFAULT_CATEGORY", "Standard")
        # Decimal string, e.g. "0.0825"
        self.invoice_tax_rate = _env_str("INVOICE_TAX_RATE", "0")


config = Config()
