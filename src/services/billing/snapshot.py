"""
Invoice billing snapshots (write-once).

A snapshot freezes everything needed to justify a charge: the tier table that
was used, the estimate made at scheduling time and the worked-time
reconciliation at completion. Once written it is the truth for that invoice,
even if tiers are edited later. Snapshots are never updated or recomputed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.core.logger import logger
from src.core.metrics import billing_snapshot_writes_total
from src.models.database import InvoiceBillingSnapshot
from src.services.billing.schema import (
    ActualHoursBreakdown,
    BillableHours,
    CostEstimate,
    InvoiceSnapshot,
)
from src.services.billing.tiers import TierTable


class SnapshotAlreadyExistsError(RuntimeError):
    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Billing snapshot already exists for invoice {invoice_id}")


class SnapshotWriter(Protocol):
    """
    Persistence contract for snapshots.

    - write() stores `snapshot.to_dict()` verbatim, exactly once per invoice, and
      raises SnapshotAlreadyExistsError on a second write
    - read() returns the stored dict unchanged (never recomputed)
    """

    def write(self, invoice_id: str, snapshot: InvoiceSnapshot) -> None: ...

    def read(self, invoice_id: str) -> dict[str, Any] | None: ...


def build_invoice_snapshot(
    *,
    tier_table: TierTable,
    cost_estimate: CostEstimate | None,
    actual_hours: ActualHoursBreakdown | None,
    billable: BillableHours | None = None,
    calculated_at: datetime | None = None,
) -> InvoiceSnapshot:
    ts = calculated_at or datetime.now(timezone.utc)
    return InvoiceSnapshot(
        rate_tiers=tuple(tier_table.to_list()),
        cost_estimate=cost_estimate,
        actual_hours=actual_hours,
        billable=billable,
        calculated_at=ts.isoformat(),
    )


class SqlAlchemySnapshotWriter:
    """SnapshotWriter backed by `invoice_billing_snapshots`. Caller owns the transaction."""

    def __init__(self, db: Session):
        self.db = db

    def write(self, invoice_id: str, snapshot: InvoiceSnapshot) -> None:
        if self.db.get(InvoiceBillingSnapshot, invoice_id) is not None:
            billing_snapshot_writes_total.labels(result="duplicate").inc()
            raise SnapshotAlreadyExistsError(invoice_id)

        data = snapshot.to_dict()
        row = InvoiceBillingSnapshot(
            invoice_id=invoice_id,
            schema_version=data["schema_version"],
            engine_version=data["engine_version"],
            rate_tiers_snapshot=data["rate_tiers_snapshot"],
            original_cost_estimate=data["original_cost_estimate"],
            actual_hours_breakdown=data["actual_hours_breakdown"],
            billable_hours=data["billable_hours"],
            calculated_at=data["calculated_at"],
        )
        try:
            # savepoint: a lost race undoes only this insert, not the caller's work
            with self.db.begin_nested():
                self.db.add(row)
        except IntegrityError as e:
            billing_snapshot_writes_total.labels(result="duplicate").inc()
            raise SnapshotAlreadyExistsError(invoice_id) from e

        billing_snapshot_writes_total.labels(result="written").inc()
        logger.info(
            "Billing snapshot written: invoice_id={}, tiers={}, schema={}",
            invoice_id,
            len(snapshot.rate_tiers),
            snapshot.schema_version,
        )

    def read(self, invoice_id: str) -> dict[str, Any] | None:
        row = self.db.get(InvoiceBillingSnapshot, invoice_id)
        if row is None:
            return None
        return {
            "schema_version": row.schema_version,
            "engine_version": row.engine_version,
            "calculated_at": row.calculated_at,
            "rate_tiers_snapshot": row.rate_tiers_snapshot,
            "original_cost_estimate": row.original_cost_estimate,
            "actual_hours_breakdown": row.actual_hours_breakdown,
            "billable_hours": row.billable_hours,
        }
