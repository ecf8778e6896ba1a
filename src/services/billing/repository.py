"""
Rate tier lookup (repository boundary).

Rows from `service_hour_rate_tiers` are converted into validated `RateTier`
value objects here; the calculation engine only ever sees a `TierTable`.

Lookup:
1) in-process cache (BillingCache, TTL) -> 2) active rows from the DB

Notes:
- A row that fails validation is skipped (logged), the rest of the table stays usable.
- Overlapping rows within a day are a configuration error and raise
  InvalidTierTableError: there is no safe way to pick one.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from src.core.logger import logger
from src.models.database import ServiceHourRateTier
from src.services.billing.cache import BillingCache
from src.services.billing.precision import to_decimal
from src.services.billing.tiers import (
    InvalidRateTierError,
    InvalidTierTableError,
    RateTier,
    TierTable,
    default_tier_table,
)


def row_to_tier(row: ServiceHourRateTier) -> RateTier:
    try:
        return RateTier(
            name=str(row.tier_name or "").strip(),
            level=int(row.tier_level),
            day_of_week=int(row.day_of_week),
            time_start=row.time_start,
            time_end=row.time_end,
            multiplier=to_decimal(row.rate_multiplier),
            description=row.description,
        )
    except InvalidRateTierError:
        raise
    except (TypeError, ValueError, ArithmeticError) as e:
        raise InvalidRateTierError(f"Malformed tier row {row.id}: {e}") from e


class RateTierRepository:
    CACHE_KEY = "rate_tiers:active"

    @staticmethod
    def load_tier_table(db: Session) -> TierTable:
        cached = BillingCache.get_tiers(RateTierRepository.CACHE_KEY)
        if cached is not None:
            return cached

        rows = (
            db.query(ServiceHourRateTier)
            .filter(ServiceHourRateTier.is_active == True)  # noqa: E712
            .order_by(
                ServiceHourRateTier.day_of_week,
                ServiceHourRateTier.time_start,
                ServiceHourRateTier.tier_level.desc(),
            )
            .all()
        )

        tiers: list[RateTier] = []
        for row in rows:
            try:
                tiers.append(row_to_tier(row))
            except InvalidRateTierError as e:
                logger.warning("Skipping invalid rate tier {}: {}", row.id, e)

        if not tiers:
            logger.warning("No active rate tiers configured; all hours bill at the default tier")

        try:
            table = TierTable.from_tiers(tiers)
        except InvalidTierTableError as e:
            logger.error("Rate tier configuration has overlaps: {}", e.errors)
            raise

        BillingCache.set_tiers(RateTierRepository.CACHE_KEY, table)
        return table

    @staticmethod
    def invalidate() -> None:
        """Call after tier administration edits."""
        BillingCache.invalidate_all()

    @staticmethod
    def seed_defaults(db: Session) -> int:
        """Insert the default weekly schedule when the table is empty. Returns rows added."""
        if db.query(ServiceHourRateTier).count() > 0:
            return 0
        added = 0
        for order, tier in enumerate(default_tier_table().tiers, start=1):
            db.add(
                ServiceHourRateTier(
                    tier_name=tier.name,
                    tier_level=tier.level,
                    day_of_week=tier.day_of_week,
                    time_start=tier.time_start,
                    time_end=tier.time_end,
                    rate_multiplier=tier.multiplier,
                    description=tier.description,
                    display_order=order,
                    is_active=True,
                )
            )
            added += 1
        db.flush()
        RateTierRepository.invalidate()
        logger.info("Seeded {} default rate tiers", added)
        return added
