"""Rule evaluation for a single transaction.

Evaluation order:

1. Internal transfer: when ``beneficiary + " " + purpose`` (lower-cased)
   contains any configured own-account identifier, the result is the reserved
   internal category. Nothing else is evaluated, so this can never conflict.
2. User mappings: every mapping whose lower-cased pattern is a substring of
   the lower-cased beneficiary or purpose contributes its category id. The
   distinct set decides: one id assigns, two or more is a conflict, none is
   an empty result. The set makes the outcome independent of mapping order.

:func:`match` never raises; no match is a normal outcome. Fallback policy
(credits without a match go to income) belongs to callers, see
:func:`categorize_for_import` and :mod:`expense_tracker.recompute`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from .models import INCOME_CATEGORY_ID, INTERNAL_CATEGORY_ID, Mapping, MatchResult, Transaction


def normalize_account_ids(ignored_accounts: Iterable[str]) -> list[str]:
    """Lower-case and trim identifiers, dropping blanks."""
    return [s for s in (a.strip().lower() for a in ignored_accounts if a) if s]


def is_internal_transfer(tx: Transaction, ignored_accounts: Iterable[str]) -> bool:
    relevant = f"{tx.beneficiary} {tx.purpose}".lower()
    return any(acc in relevant for acc in normalize_account_ids(ignored_accounts))


def matching_category_ids(tx: Transaction, mappings: Iterable[Mapping]) -> frozenset[str]:
    """Return the distinct category ids of every mapping that matches ``tx``."""

    beneficiary = tx.beneficiary.lower()
    purpose = tx.purpose.lower()
    matched: set[str] = set()
    for m in mappings:
        pattern = m.pattern.lower()
        # An empty pattern is a substring of everything; never let it match.
        if not pattern.strip():
            continue
        if pattern in beneficiary or pattern in purpose:
            matched.add(m.category_id)
    return frozenset(matched)


def match(
    tx: Transaction,
    mappings: Iterable[Mapping],
    ignored_accounts: Iterable[str] = (),
    *,
    internal_category_id: str = INTERNAL_CATEGORY_ID,
) -> MatchResult:
    """Evaluate ``tx`` against the internal-transfer check and ``mappings``."""

    if is_internal_transfer(tx, ignored_accounts):
        return MatchResult(category_id=internal_category_id)

    matched = matching_category_ids(tx, mappings)
    if len(matched) == 1:
        (only,) = matched
        return MatchResult(category_id=only)
    if len(matched) > 1:
        return MatchResult(conflicts=matched)
    return MatchResult()


def apply_match(tx: Transaction, result: MatchResult) -> Transaction:
    """Set the outcome of a non-empty match on ``tx``, keeping the fields exclusive."""

    if result.category_id is not None:
        return replace(tx, category_id=result.category_id, conflicts=None)
    if result.conflicts is not None:
        return replace(tx, category_id=None, conflicts=result.conflicts)
    return tx


def categorize_for_import(
    tx: Transaction,
    mappings: Iterable[Mapping],
    ignored_accounts: Iterable[str] = (),
    *,
    income_category_id: str = INCOME_CATEGORY_ID,
    internal_category_id: str = INTERNAL_CATEGORY_ID,
) -> Transaction:
    """Import-time (incremental) categorization.

    Transactions that already carry a category are returned untouched. Otherwise
    a single match assigns, a conflict records the candidate set, and no match
    leaves debits unassigned while credits fall back to income.
    """

    if tx.category_id is not None:
        return tx
    result = match(tx, mappings, ignored_accounts, internal_category_id=internal_category_id)
    if not result.is_empty:
        return apply_match(tx, result)
    if tx.is_credit:
        return replace(tx, category_id=income_category_id, conflicts=None)
    return tx


def resolve_manually(tx: Transaction, category_id: str) -> Transaction:
    """A human choice: set the category and drop any conflict set.

    Does not consult the rules. Callers are responsible for checking that
    ``category_id`` exists (see :class:`~expense_tracker.integrity.IntegrityManager`).
    """

    if not category_id:
        raise ValueError("category_id must be non-empty")
    return replace(tx, category_id=category_id, conflicts=None)


__all__ = [
    "apply_match",
    "categorize_for_import",
    "is_internal_transfer",
    "match",
    "matching_category_ids",
    "normalize_account_ids",
    "resolve_manually",
]
