from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CHAR,
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Reference: et_categories
# ---------------------------


class EtCategory(Base):
    __tablename__ = "et_categories"

    # Two ids are reserved by convention: "IN" (income fallback) and
    # "INTERNAL" (ignored/internal transfers). They are ordinary rows here.
    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    color: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'#3b82f6'")
    )
    # Display-only; the categorization core never reads it.
    budget: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


# ---------------------------
# Rules: et_mappings
# ---------------------------


class EtMapping(Base):
    __tablename__ = "et_mappings"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    # Case-insensitive substring matched against beneficiary/purpose. Stored
    # verbatim; rule import merges on the exact string.
    pattern: Mapped[str] = mapped_column(Text, nullable=False)
    category_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("et_categories.id"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )


# ---------------------------
# Core: et_transactions
# ---------------------------


class EtTransaction(Base):
    __tablename__ = "et_transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    type: Mapped[str] = mapped_column(CHAR(1), nullable=False)
    beneficiary: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    purpose: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    category_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("et_categories.id"),
        nullable=True,
        index=True,
    )
    # Sorted list of >= 2 distinct category ids, or SQL NULL. ``none_as_null``
    # keeps Python ``None`` out of the JSON encoder so the CHECK below works.
    conflicts: Mapped[list[str] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    # Verbatim source columns, retained for display/audit.
    original_row: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (
        CheckConstraint("type in ('D','C')", name="ck_et_tx_type"),
        CheckConstraint("amount >= 0", name="ck_et_tx_amount_non_negative"),
        CheckConstraint(
            "category_id IS NULL OR conflicts IS NULL",
            name="ck_et_tx_category_xor_conflicts",
        ),
    )


# ---------------------------
# Settings and import history
# ---------------------------


class EtSetting(Base):
    __tablename__ = "et_settings"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)


class EtImportLog(Base):
    __tablename__ = "et_import_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    imported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False)


__all__ = [
    "Base",
    "EtCategory",
    "EtMapping",
    "EtTransaction",
    "EtSetting",
    "EtImportLog",
]
