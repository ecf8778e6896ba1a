"""
ORM models used by the billing repositories.

Only the tables the billing engine reads from (rate tiers) or writes to
(invoice billing snapshots) are mapped here.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceHourRateTier(Base):
    """Standard / Premium / Emergency hour windows per day of week (0 = Sunday)."""

    __tablename__ = "service_hour_rate_tiers"
    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="valid_day_of_week"),
        CheckConstraint("time_start < time_end", name="valid_time_range"),
        CheckConstraint("rate_multiplier > 0", name="valid_rate_multiplier"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    tier_name = Column(String(50), nullable=False)
    tier_level = Column(Integer, nullable=False)
    day_of_week = Column(Integer, nullable=False, index=True)
    time_start = Column(Time, nullable=False)
    time_end = Column(Time, nullable=False)
    rate_multiplier = Column(Numeric(4, 2), nullable=False, default=1)

    color_code = Column(String(7), default="#28a745")
    description = Column(Text, nullable=True)
    display_order = Column(Integer, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class InvoiceBillingSnapshot(Base):
    """
    Write-once billing evidence for an invoice.

    Rows are inserted by SqlAlchemySnapshotWriter and never updated.
    """

    __tablename__ = "invoice_billing_snapshots"

    invoice_id = Column(String(36), primary_key=True)
    schema_version = Column(String(16), nullable=False)
    engine_version = Column(String(16), nullable=False)
    rate_tiers_snapshot = Column(JSON, nullable=False)
    original_cost_estimate = Column(JSON, nullable=True)
    actual_hours_breakdown = Column(JSON, nullable=True)
    billable_hours = Column(JSON, nullable=True)
    calculated_at = Column(String(40), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
