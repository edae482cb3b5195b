# ruff: noqa: I001
"""Persistence integration for expense_tracker.

``LedgerStore`` wraps a SQLAlchemy session and implements the storage contract
the core consumes (categories, mappings, transactions, settings, import log)
on top of the ORM models owned by ``libs/db``.

Scope:
- Plain reads/writes and upsert-by-id for transactions.
- The store never cascades. Keeping categories, mappings and transactions
  consistent is :mod:`expense_tracker.integrity`'s job.
- The store never commits. Callers own the transaction scope
  (``db.client.session_scope``), except where the integrity manager commits a
  cascade as one unit.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from db.models.ledger import EtCategory, EtImportLog, EtMapping, EtSetting, EtTransaction
from .models import SYSTEM_CATEGORIES, Category, ImportLog, Mapping, Transaction, TxType

# Settings keys (values are JSON)
IGNORED_ACCOUNTS_KEY = "ignoredAccounts"


# ---------------------------------------------------------------------------
# Row <-> record conversion
# ---------------------------------------------------------------------------


def _category_from_row(row: EtCategory) -> Category:
    return Category(
        id=row.id,
        name=row.name,
        color=row.color,
        budget=Decimal(row.budget if row.budget is not None else 0),
    )


def _mapping_from_row(row: EtMapping) -> Mapping:
    return Mapping(id=row.id, pattern=row.pattern, category_id=row.category_id)


def _transaction_from_row(row: EtTransaction) -> Transaction:
    return Transaction(
        id=row.id,
        date=row.date.isoformat(),
        amount=Decimal(row.amount),
        type=TxType(row.type),
        beneficiary=row.beneficiary or "",
        purpose=row.purpose or "",
        original_row=dict(row.original_row or {}),
        category_id=row.category_id,
        conflicts=frozenset(row.conflicts) if row.conflicts else None,
    )


def _transaction_values(tx: Transaction) -> dict[str, Any]:
    return {
        "id": tx.id,
        "date": date.fromisoformat(tx.date),
        "amount": tx.amount,
        "type": tx.type.value,
        "beneficiary": tx.beneficiary,
        "purpose": tx.purpose,
        "category_id": tx.category_id,
        # Stored sorted so equal sets serialize identically.
        "conflicts": sorted(tx.conflicts) if tx.conflicts else None,
        "original_row": dict(tx.original_row),
    }


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class LedgerStore:
    """Repository over one SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # -- categories ---------------------------------------------------------

    def get_categories(self) -> list[Category]:
        rows = self.session.execute(select(EtCategory).order_by(EtCategory.name)).scalars().all()
        return [_category_from_row(r) for r in rows]

    def get_category(self, category_id: str) -> Category | None:
        row = self.session.get(EtCategory, category_id)
        return _category_from_row(row) if row is not None else None

    def category_exists(self, category_id: str) -> bool:
        return self.session.get(EtCategory, category_id) is not None

    def add_category(self, category: Category) -> None:
        """Insert or replace a category by id."""
        self.session.merge(
            EtCategory(
                id=category.id,
                name=category.name,
                color=category.color,
                budget=category.budget,
            )
        )
        self.session.flush()

    def delete_category(self, category_id: str) -> int:
        """Delete the category row only; returns the number of rows removed."""
        res = self.session.execute(delete(EtCategory).where(EtCategory.id == category_id))
        return res.rowcount or 0

    def ensure_system_categories(self) -> list[Category]:
        """Create the reserved income/internal categories when missing."""
        created: list[Category] = []
        for cat in SYSTEM_CATEGORIES:
            if not self.category_exists(cat.id):
                self.add_category(cat)
                created.append(cat)
        return created

    # -- mappings -----------------------------------------------------------

    def get_mappings(self) -> list[Mapping]:
        rows = (
            self.session.execute(select(EtMapping).order_by(EtMapping.created_at, EtMapping.id))
            .scalars()
            .all()
        )
        return [_mapping_from_row(r) for r in rows]

    def add_mapping(self, mapping: Mapping) -> None:
        self.session.merge(
            EtMapping(id=mapping.id, pattern=mapping.pattern, category_id=mapping.category_id)
        )
        self.session.flush()

    def delete_mapping(self, mapping_id: str) -> int:
        res = self.session.execute(delete(EtMapping).where(EtMapping.id == mapping_id))
        return res.rowcount or 0

    def delete_mappings_for_category(self, category_id: str) -> int:
        res = self.session.execute(delete(EtMapping).where(EtMapping.category_id == category_id))
        return res.rowcount or 0

    def count_mappings_for_category(self, category_id: str) -> int:
        return self.session.execute(
            select(func.count()).select_from(EtMapping).where(EtMapping.category_id == category_id)
        ).scalar_one()

    # -- transactions -------------------------------------------------------

    def get_all_transactions(self) -> list[Transaction]:
        rows = (
            self.session.execute(
                select(EtTransaction).order_by(EtTransaction.date, EtTransaction.id)
            )
            .scalars()
            .all()
        )
        return [_transaction_from_row(r) for r in rows]

    def get_transaction(self, tx_id: str) -> Transaction | None:
        row = self.session.get(EtTransaction, tx_id)
        return _transaction_from_row(row) if row is not None else None

    def get_transactions_by_ids(self, ids: Iterable[str]) -> dict[str, Transaction]:
        id_list = list(dict.fromkeys(ids))
        if not id_list:
            return {}
        rows = (
            self.session.execute(select(EtTransaction).where(EtTransaction.id.in_(id_list)))
            .scalars()
            .all()
        )
        return {r.id: _transaction_from_row(r) for r in rows}

    def save_transactions(self, transactions: Iterable[Transaction]) -> int:
        """Upsert transactions by id; returns how many were written."""
        n = 0
        for tx in transactions:
            values = _transaction_values(tx)
            values["updated_at"] = datetime.now(UTC)
            self.session.merge(EtTransaction(**values))
            n += 1
        self.session.flush()
        return n

    def clear_category_on_transactions(self, category_id: str) -> int:
        res = self.session.execute(
            update(EtTransaction)
            .where(EtTransaction.category_id == category_id)
            .values(category_id=None, updated_at=datetime.now(UTC))
        )
        return res.rowcount or 0

    def count_transactions_for_category(self, category_id: str) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(EtTransaction)
            .where(EtTransaction.category_id == category_id)
        ).scalar_one()

    # -- settings -----------------------------------------------------------

    def get_setting(self, key: str, default: Any = None) -> Any:
        row = self.session.get(EtSetting, key)
        if row is None or row.value is None:
            return default
        return row.value

    def set_setting(self, key: str, value: Any) -> None:
        self.session.merge(EtSetting(key=key, value=value))
        self.session.flush()

    def get_ignored_accounts(self) -> list[str]:
        value = self.get_setting(IGNORED_ACCOUNTS_KEY, [])
        return [str(v) for v in value] if isinstance(value, list) else []

    def set_ignored_accounts(self, accounts: Iterable[str]) -> list[str]:
        cleaned = list(dict.fromkeys(a.strip() for a in accounts if a and a.strip()))
        self.set_setting(IGNORED_ACCOUNTS_KEY, cleaned)
        return cleaned

    def add_ignored_account(self, account: str) -> list[str]:
        if not account or not account.strip():
            raise ValueError("account identifier must be non-empty")
        return self.set_ignored_accounts([*self.get_ignored_accounts(), account])

    def remove_ignored_account(self, account: str) -> list[str]:
        target = account.strip()
        return self.set_ignored_accounts(a for a in self.get_ignored_accounts() if a != target)

    # -- import log ---------------------------------------------------------

    def add_import_log(self, log: ImportLog) -> None:
        self.session.add(
            EtImportLog(
                id=log.id,
                imported_at=datetime.fromisoformat(log.date),
                filename=log.filename,
                count=log.count,
            )
        )
        self.session.flush()

    def get_import_logs(self) -> list[ImportLog]:
        """Return the import history oldest first."""
        rows = (
            self.session.execute(select(EtImportLog).order_by(EtImportLog.imported_at))
            .scalars()
            .all()
        )
        return [
            ImportLog(id=r.id, date=r.imported_at.isoformat(), filename=r.filename, count=r.count)
            for r in rows
        ]

    # -- bulk clears --------------------------------------------------------

    def clear_transactions_only(self) -> int:
        """Delete transactions and the import log; returns transactions removed."""
        res = self.session.execute(delete(EtTransaction))
        self.session.execute(delete(EtImportLog))
        return res.rowcount or 0

    def clear_all(self) -> int:
        """Delete everything except settings; returns transactions removed."""
        # FK-safe order: dependents before categories.
        res = self.session.execute(delete(EtTransaction))
        self.session.execute(delete(EtMapping))
        self.session.execute(delete(EtCategory))
        self.session.execute(delete(EtImportLog))
        return res.rowcount or 0


__all__ = [
    "IGNORED_ACCOUNTS_KEY",
    "LedgerStore",
]
