from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from src.core.logger import logger
from src.services.billing.actual_hours import (
    TimeEntryLike,
    compute_billable_hours,
    reconcile_actual_hours,
)
from src.services.billing.estimate import estimate_scheduled_cost
from src.services.billing.repository import RateTierRepository
from src.services.billing.schema import CostEstimate, InvoiceSnapshot
from src.services.billing.snapshot import (
    SnapshotWriter,
    SqlAlchemySnapshotWriter,
    build_invoice_snapshot,
)
from src.services.billing.tiers import TierTable


class BillingService:
    """
    BillingService (application helper for the billing domain).

    Notes:
    - Loads the live tier table once per call and passes the SAME table to the
      engine and to the snapshot, so a persisted invoice always carries the
      tiers its figures were computed with.
    - Does not commit; callers own the transaction.
    """

    def __init__(self, db: Session, *, snapshot_writer: SnapshotWriter | None = None):
        self.db = db
        # Lazy-init: estimates (hot path) never need a writer.
        self._snapshot_writer = snapshot_writer

    def _get_snapshot_writer(self) -> SnapshotWriter:
        if self._snapshot_writer is None:
            self._snapshot_writer = SqlAlchemySnapshotWriter(self.db)
        return self._snapshot_writer

    def tier_table(self) -> TierTable:
        return RateTierRepository.load_tier_table(self.db)

    def estimate(
        self,
        *,
        date_value: date | datetime | str | None,
        time_start: time | str | None,
        time_end: time | str | None,
        base_rate: Decimal | float | int | str | None,
        is_first_request: bool,
        category_name: str | None = None,
        tier_table: TierTable | None = None,
    ) -> CostEstimate | None:
        """
        Estimate a scheduled request.

        Returns None for incomplete drafts (see estimate_scheduled_cost).
        """
        table = tier_table if tier_table is not None else self.tier_table()
        return estimate_scheduled_cost(
            date_value,
            time_start,
            time_end,
            base_rate,
            is_first_request,
            category_name,
            table,
        )

    def finalize_invoice(
        self,
        *,
        invoice_id: str,
        time_entries: Iterable[TimeEntryLike],
        base_rate: Decimal | float | int | str,
        is_first_request: bool,
        scheduled_date: date | datetime | str | None = None,
        scheduled_start: time | str | None = None,
        scheduled_end: time | str | None = None,
        category_name: str | None = None,
        tax_rate: Decimal | float | str | None = None,
    ) -> InvoiceSnapshot:
        """
        Compute billable hours for completed work and persist the invoice snapshot.

        Raises:
            SnapshotAlreadyExistsError: the invoice already has a snapshot. The
                existing one stays authoritative; nothing is recomputed.
        """
        table = self.tier_table()
        entries = list(time_entries)

        cost_estimate = None
        if scheduled_date is not None:
            cost_estimate = self.estimate(
                date_value=scheduled_date,
                time_start=scheduled_start,
                time_end=scheduled_end,
                base_rate=base_rate,
                is_first_request=is_first_request,
                category_name=category_name,
                tier_table=table,
            )

        billable = compute_billable_hours(
            entries, table, base_rate, is_first_request, tax_rate=tax_rate
        )
        actual = reconcile_actual_hours(entries, table, billed_hours=billable.hours_by_tier())

        snapshot = build_invoice_snapshot(
            tier_table=table,
            cost_estimate=cost_estimate,
            actual_hours=actual,
            billable=billable,
        )
        self._get_snapshot_writer().write(invoice_id, snapshot)

        if cost_estimate is None:
            logger.info("Invoice {} finalized without a scheduled estimate", invoice_id)
        return snapshot
