# ruff: noqa: I001
"""Ledger core tables and system categories.

Revision ID: 0001_et_core
Revises: None
Create Date: 2026-09-28
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_et_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "et_categories",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("color", sa.String(), nullable=False, server_default=sa.text("'#3b82f6'")),
        sa.Column("budget", sa.Numeric(18, 2), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )

    op.create_table(
        "et_mappings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("pattern", sa.Text(), nullable=False),
        sa.Column(
            "category_id",
            sa.String(),
            sa.ForeignKey("et_categories.id"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index("ix_et_mappings_category_id", "et_mappings", ["category_id"])

    op.create_table(
        "et_transactions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("type", sa.CHAR(1), nullable=False),
        sa.Column("beneficiary", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("purpose", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "category_id",
            sa.String(),
            sa.ForeignKey("et_categories.id"),
            nullable=True,
        ),
        sa.Column("conflicts", sa.JSON(none_as_null=True), nullable=True),
        sa.Column("original_row", sa.JSON(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint("type in ('D','C')", name="ck_et_tx_type"),
        sa.CheckConstraint("amount >= 0", name="ck_et_tx_amount_non_negative"),
        sa.CheckConstraint(
            "category_id IS NULL OR conflicts IS NULL",
            name="ck_et_tx_category_xor_conflicts",
        ),
    )
    op.create_index("ix_et_transactions_date", "et_transactions", ["date"])
    op.create_index("ix_et_transactions_category_id", "et_transactions", ["category_id"])

    op.create_table(
        "et_settings",
        sa.Column("key", sa.String(), primary_key=True),
        sa.Column("value", sa.JSON(), nullable=True),
    )

    op.create_table(
        "et_import_logs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("imported_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
    )
    op.create_index("ix_et_import_logs_imported_at", "et_import_logs", ["imported_at"])

    # Seed the reserved categories (mirrors expense_tracker.models.SYSTEM_CATEGORIES)
    op.bulk_insert(
        sa.table(
            "et_categories",
            sa.column("id", sa.String()),
            sa.column("name", sa.String()),
            sa.column("color", sa.String()),
            sa.column("budget", sa.Numeric(18, 2)),
        ),
        [
            {"id": "IN", "name": "Income", "color": "#22c55e", "budget": 0},
            {"id": "INTERNAL", "name": "Internal / Ignored", "color": "#9ca3af", "budget": 0},
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_et_import_logs_imported_at", table_name="et_import_logs")
    op.drop_table("et_import_logs")
    op.drop_table("et_settings")
    op.drop_index("ix_et_transactions_category_id", table_name="et_transactions")
    op.drop_index("ix_et_transactions_date", table_name="et_transactions")
    op.drop_table("et_transactions")
    op.drop_index("ix_et_mappings_category_id", table_name="et_mappings")
    op.drop_table("et_mappings")
    op.drop_table("et_categories")
