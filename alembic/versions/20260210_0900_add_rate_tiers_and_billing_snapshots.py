"""add service_hour_rate_tiers and invoice_billing_snapshots

Revision ID: c1d2e3f4a5b6
Revises:
Create Date: 2026-02-10 09:00:00.000000

"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy import inspect

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "c1d2e3f4a5b6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table_name: str) -> bool:
    bind = op.get_bind()
    return table_name in inspect(bind).get_table_names()


def upgrade() -> None:
    if not _table_exists("service_hour_rate_tiers"):
        op.create_table(
            "service_hour_rate_tiers",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("tier_name", sa.String(50), nullable=False),
            sa.Column("tier_level", sa.Integer(), nullable=False),
            sa.Column("day_of_week", sa.Integer(), nullable=False),
            sa.Column("time_start", sa.Time(), nullable=False),
            sa.Column("time_end", sa.Time(), nullable=False),
            sa.Column("rate_multiplier", sa.Numeric(4, 2), nullable=False, server_default="1.00"),
            sa.Column("color_code", sa.String(7), server_default="#28a745"),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("display_order", sa.Integer(), server_default="0"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="valid_day_of_week"),
            sa.CheckConstraint("time_start < time_end", name="valid_time_range"),
            sa.CheckConstraint("rate_multiplier > 0", name="valid_rate_multiplier"),
        )
        op.create_index(
            "ix_service_hour_rate_tiers_day_of_week", "service_hour_rate_tiers", ["day_of_week"]
        )
        op.create_index(
            "ix_service_hour_rate_tiers_is_active", "service_hour_rate_tiers", ["is_active"]
        )

    # Write-once: rows are inserted at invoice finalization and never updated
    if not _table_exists("invoice_billing_snapshots"):
        op.create_table(
            "invoice_billing_snapshots",
            sa.Column("invoice_id", sa.String(36), primary_key=True),
            sa.Column("schema_version", sa.String(16), nullable=False),
            sa.Column("engine_version", sa.String(16), nullable=False),
            sa.Column("rate_tiers_snapshot", sa.JSON(), nullable=False),
            sa.Column("original_cost_estimate", sa.JSON(), nullable=True),
            sa.Column("actual_hours_breakdown", sa.JSON(), nullable=True),
            sa.Column("billable_hours", sa.JSON(), nullable=True),
            sa.Column("calculated_at", sa.String(40), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        )


def downgrade() -> None:
    if _table_exists("invoice_billing_snapshots"):
        op.drop_table("invoice_billing_snapshots")

    if _table_exists("service_hour_rate_tiers"):
        op.drop_index("ix_service_hour_rate_tiers_is_active", table_name="service_hour_rate_tiers")
        op.drop_index("ix_service_hour_rate_tiers_day_of_week", table_name="service_hour_rate_tiers")
        op.drop_table("service_hour_rate_tiers")
