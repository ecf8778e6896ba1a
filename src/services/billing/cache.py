"""
Billing in-process cache.

Small TTL cache for the rate tier table (high-read, low-churn configuration).

Important:
- Keep cached values *session-agnostic*. Never cache SQLAlchemy ORM objects bound
  to a specific Session; cache the validated, frozen `TierTable` instead.
- Invalidation only affects *future* estimates. Persisted snapshots carry their
  own copy of the tiers and are never recomputed.
"""

from __future__ import annotations

import time
from typing import Any

from src.config.settings import config


class BillingCache:
    """
    Simple TTL cache with oldest-first eviction.

    - TTL: config.billing_tier_cache_ttl_seconds (default 300s)
    - Max entries per cache: 256 (evict the oldest inserts on overflow)
    """

    MAX_ENTRIES = 256

    _tier_cache: dict[str, tuple[Any, float]] = {}

    # ----------------------------
    # Tier table cache
    # ----------------------------
    @classmethod
    def get_tiers(cls, cache_key: str) -> Any | None:
        return cls._get(cls._tier_cache, cache_key)

    @classmethod
    def set_tiers(cls, cache_key: str, value: Any) -> None:
        cls._set(cls._tier_cache, cache_key, value)

    # ----------------------------
    # Invalidation
    # ----------------------------
    @classmethod
    def invalidate_all(cls) -> None:
        cls._tier_cache.clear()

    # ----------------------------
    # Internal helpers
    # ----------------------------
    @classmethod
    def _ttl_seconds(cls) -> int:
        return int(config.billing_tier_cache_ttl_seconds)

    @classmethod
    def _get(cls, cache: dict[str, tuple[Any, float]], key: str) -> Any | None:
        item = cache.get(key)
        if item is None:
            return None
        value, ts = item
        if time.time() - ts < cls._ttl_seconds():
            return value
        # expired
        cache.pop(key, None)
        return None

    @classmethod
    def _set(cls, cache: dict[str, tuple[Any, float]], key: str, value: Any) -> None:
        """Set, evicting the oldest entries when cache exceeds MAX_ENTRIES."""
        cache[key] = (value, time.time())
        if len(cache) > cls.MAX_ENTRIES:
            cls._evict_oldest(cache, cls.MAX_ENTRIES // 4)

    @classmethod
    def _evict_oldest(cls, cache: dict[str, tuple[Any, float]], count: int) -> None:
        """Evict the oldest `count` entries from cache."""
        if not cache or count <= 0:
            return
        sorted_keys = sorted(cache.keys(), key=lambda k: cache[k][1])
        for k in sorted_keys[:count]:
            cache.pop(k, None)
