"""Referential integrity between categories, mappings and transactions.

Invariants kept after every operation here completes:

1. a transaction's ``category_id`` is unset or names an existing category;
2. a mapping's ``category_id`` names an existing category;
3. a transaction's conflict set has two or more ids and excludes ``category_id``.

Category deletion is the only operation that can break (1) and (2), so it
runs as one explicit unit of work over the three collections:

- clear ``category_id`` on every transaction that points at the category
  (those transactions become unassigned; rules are not re-run);
- delete every mapping that points at the category;
- delete the category row;
- verify no reference remains, then commit.

Any failure rolls the whole unit back and surfaces as
:class:`CascadeIntegrityError`; readers never see a half-applied cascade.

Every unit of work that writes category references runs inside
:func:`category_write_scope`, which takes ``CATEGORY_WRITE_LOCK`` before the
session's first write and releases it only after the commit. The lock is
therefore always acquired before the database write lock, never after it.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from db.client import session_scope
from sqlalchemy.orm import Session

from .logging_setup import get_logger
from .matcher import resolve_manually
from .models import Category, Mapping, Transaction
from .persistence import LedgerStore

logger = get_logger("expense_tracker.integrity")

# Serializes units of work that write category references, through commit.
CATEGORY_WRITE_LOCK = threading.RLock()


@contextmanager
def category_write_scope(*, database_url: str | None = None) -> Iterator[Session]:
    """``session_scope`` held under ``CATEGORY_WRITE_LOCK`` until it commits."""

    with CATEGORY_WRITE_LOCK, session_scope(database_url=database_url) as session:
        yield session


class ReferentialIntegrityError(ValueError):
    """A write would reference a category that does not exist."""


class UnknownCategoryError(LookupError):
    """The category to delete does not exist."""


class CascadeIntegrityError(RuntimeError):
    """A cascade failed or left dangling references; storage was rolled back."""


@dataclass(frozen=True, slots=True)
class CascadeReport:
    category_id: str
    transactions_cleared: int
    mappings_deleted: int


def check_invariants(
    categories: Iterable[Category],
    mappings: Iterable[Mapping],
    transactions: Iterable[Transaction],
) -> list[str]:
    """Return human-readable violations of the ledger invariants (empty when sound)."""

    known = {c.id for c in categories}
    problems: list[str] = []
    for m in mappings:
        if m.category_id not in known:
            problems.append(f"mapping {m.id} references missing category {m.category_id}")
    for tx in transactions:
        if tx.category_id is not None and tx.category_id not in known:
            problems.append(f"transaction {tx.id} references missing category {tx.category_id}")
        if tx.conflicts is not None:
            if tx.category_id is not None:
                problems.append(f"transaction {tx.id} has both a category and conflicts")
            if len(tx.conflicts) < 2:
                problems.append(f"transaction {tx.id} has a conflict set of fewer than two ids")
    return problems


def stale_conflicts(
    categories: Iterable[Category], transactions: Iterable[Transaction]
) -> list[str]:
    """Report conflict candidates that name categories which no longer exist.

    Not a violation: a cascade leaves conflict sets alone and the next reapply
    recomputes them. Until then the picker offers fewer candidates.
    """

    known = {c.id for c in categories}
    warnings: list[str] = []
    for tx in transactions:
        if not tx.conflicts:
            continue
        gone = sorted(tx.conflicts - known)
        if gone:
            warnings.append(
                f"transaction {tx.id} lists deleted categories among its conflicts: "
                + ", ".join(gone)
            )
    return warnings


class IntegrityManager:
    """Orchestrates category-referencing writes over a :class:`LedgerStore`.

    Apart from :meth:`delete_category`, methods expect the caller to hold
    ``CATEGORY_WRITE_LOCK`` for the whole session (see
    :func:`category_write_scope`).
    """

    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    # -- cascade ------------------------------------------------------------

    def delete_category(self, category_id: str) -> CascadeReport:
        """Delete ``category_id`` and everything that references it, atomically.

        Commits the store's session on success and rolls it back on failure, so
        call it with no unrelated pending changes in the same session.

        Raises
        ------
        UnknownCategoryError
            The category does not exist (nothing is changed).
        CascadeIntegrityError
            A step failed or the post-condition check found dangling
            references. The session has been rolled back.
        """

        session = self.store.session
        with CATEGORY_WRITE_LOCK:
            if not self.store.category_exists(category_id):
                raise UnknownCategoryError(f"category not found: {category_id!r}")
            try:
                cleared = self.store.clear_category_on_transactions(category_id)
                deleted_maps = self.store.delete_mappings_for_category(category_id)
                removed = self.store.delete_category(category_id)
                session.flush()

                dangling_tx = self.store.count_transactions_for_category(category_id)
                dangling_maps = self.store.count_mappings_for_category(category_id)
                if removed != 1 or dangling_tx or dangling_maps or self.store.category_exists(
                    category_id
                ):
                    raise CascadeIntegrityError(
                        f"cascade for category {category_id!r} incomplete: "
                        f"category_removed={removed}, dangling_transactions={dangling_tx}, "
                        f"dangling_mappings={dangling_maps}"
                    )
                session.commit()
            except CascadeIntegrityError:
                session.rollback()
                logger.error("cascade for category %s rolled back", category_id)
                raise
            except Exception as exc:
                session.rollback()
                logger.error("cascade for category %s failed: %s", category_id, exc)
                raise CascadeIntegrityError(
                    f"cascade for category {category_id!r} failed and was rolled back: {exc}"
                ) from exc

        logger.info(
            "deleted category %s: %d transactions unassigned, %d mappings removed",
            category_id,
            cleared,
            deleted_maps,
        )
        return CascadeReport(
            category_id=category_id,
            transactions_cleared=cleared,
            mappings_deleted=deleted_maps,
        )

    # -- guarded writes -----------------------------------------------------

    def add_category(self, category: Category) -> Category:
        self.store.add_category(category)
        return category

    def require_category(self, category_id: str) -> None:
        if not category_id or not self.store.category_exists(category_id):
            raise ReferentialIntegrityError(f"category does not exist: {category_id!r}")

    def add_mapping(self, pattern: str, category_id: str, *, mapping_id: str | None = None) -> Mapping:
        """Create a rule after checking that its category exists."""

        if not pattern or not pattern.strip():
            raise ValueError("pattern must be non-empty")
        self.require_category(category_id)
        mapping = Mapping(
            id=mapping_id or f"map-{uuid.uuid4().hex}",
            pattern=pattern,
            category_id=category_id,
        )
        self.store.add_mapping(mapping)
        return mapping

    def resolve_transaction(self, tx_id: str, category_id: str) -> Transaction:
        """Apply a manual category choice to a stored transaction."""

        tx = self.store.get_transaction(tx_id)
        if tx is None:
            raise LookupError(f"transaction not found: {tx_id!r}")
        self.require_category(category_id)
        resolved = resolve_manually(tx, category_id)
        self.store.save_transactions([resolved])
        return resolved

    def verify(self) -> list[str]:
        return check_invariants(
            self.store.get_categories(),
            self.store.get_mappings(),
            self.store.get_all_transactions(),
        )

    def warnings(self) -> list[str]:
        return stale_conflicts(self.store.get_categories(), self.store.get_all_transactions())


__all__ = [
    "CATEGORY_WRITE_LOCK",
    "CascadeIntegrityError",
    "CascadeReport",
    "IntegrityManager",
    "ReferentialIntegrityError",
    "UnknownCategoryError",
    "category_write_scope",
    "check_invariants",
    "stale_conflicts",
]
