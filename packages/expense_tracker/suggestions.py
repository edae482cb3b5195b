"""Rule suggestions from frequent uncategorized counterparties."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from .models import Transaction

MIN_KEY_LENGTH = 3


@dataclass(frozen=True, slots=True)
class Suggestion:
    name: str
    count: int


def suggest_patterns(transactions: Iterable[Transaction], limit: int = 10) -> list[Suggestion]:
    """Return the most frequent beneficiaries among unassigned transactions.

    The key is the beneficiary, or the purpose when the beneficiary is empty.
    Keys shorter than three characters are ignored. Ties keep first-seen order.
    """

    if limit < 1:
        raise ValueError("limit must be a positive integer")

    counts: Counter[str] = Counter()
    for tx in transactions:
        if tx.category_id is not None:
            continue
        key = tx.beneficiary or tx.purpose
        if len(key) < MIN_KEY_LENGTH:
            continue
        counts[key] += 1

    # Counter preserves insertion order and most_common() sorts stably.
    return [Suggestion(name=k, count=n) for k, n in counts.most_common(limit)]


__all__ = ["Suggestion", "suggest_patterns"]
