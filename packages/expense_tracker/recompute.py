"""Strict "reapply rules" recomputation over the full transaction set.

Unlike import-time categorization, this pass derives every transaction's
category from the current rules alone and overwrites whatever is stored,
manual choices included:

========================  =====================================
rule outcome              resulting state
========================  =====================================
single match              ``category_id`` set, conflicts cleared
conflict                  ``category_id`` cleared, conflicts set
no match, credit          income category, conflicts cleared
no match, debit           both cleared
========================  =====================================

The function is pure. Asking the user for confirmation is the caller's job;
this module only computes the new states and how many of them differ.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

from .logging_setup import get_logger
from .matcher import match
from .models import INCOME_CATEGORY_ID, INTERNAL_CATEGORY_ID, Mapping, Transaction

logger = get_logger("expense_tracker.recompute")


@dataclass(frozen=True, slots=True)
class ReapplyResult:
    """All transactions (input order) after recompute, plus what changed."""

    transactions: list[Transaction]
    change_count: int
    changed_ids: tuple[str, ...] = ()

    @property
    def changed(self) -> list[Transaction]:
        ids = set(self.changed_ids)
        return [t for t in self.transactions if t.id in ids]


def recompute_one(
    tx: Transaction,
    mappings: Sequence[Mapping],
    ignored_accounts: Sequence[str],
    *,
    income_category_id: str = INCOME_CATEGORY_ID,
    internal_category_id: str = INTERNAL_CATEGORY_ID,
) -> Transaction:
    result = match(tx, mappings, ignored_accounts, internal_category_id=internal_category_id)
    if result.category_id is not None:
        return replace(tx, category_id=result.category_id, conflicts=None)
    if result.conflicts is not None:
        return replace(tx, category_id=None, conflicts=result.conflicts)
    if tx.is_credit:
        return replace(tx, category_id=income_category_id, conflicts=None)
    return replace(tx, category_id=None, conflicts=None)


def reapply(
    transactions: Iterable[Transaction],
    mappings: Iterable[Mapping],
    ignored_accounts: Iterable[str] = (),
    *,
    income_category_id: str = INCOME_CATEGORY_ID,
    internal_category_id: str = INTERNAL_CATEGORY_ID,
) -> ReapplyResult:
    """Recompute every transaction and count those whose state differs.

    Comparison is field-by-field on ``category_id`` and the conflict set (as a
    set, so ordering never counts as a change).
    """

    maps = list(mappings)
    ignored = list(ignored_accounts)
    updated: list[Transaction] = []
    changed_ids: list[str] = []
    for tx in transactions:
        new_tx = recompute_one(
            tx,
            maps,
            ignored,
            income_category_id=income_category_id,
            internal_category_id=internal_category_id,
        )
        if new_tx.categorization_state() != tx.categorization_state():
            changed_ids.append(tx.id)
        updated.append(new_tx)

    logger.info("reapply: %d of %d transactions changed", len(changed_ids), len(updated))
    return ReapplyResult(
        transactions=updated,
        change_count=len(changed_ids),
        changed_ids=tuple(changed_ids),
    )


__all__ = ["ReapplyResult", "reapply", "recompute_one"]
