"""Data models for ``expense_tracker``.

Records are frozen, slotted dataclasses. Operations never mutate a record in
place; they return a modified copy via :func:`dataclasses.replace`. The rule
interchange DTO is a pydantic model because it validates untrusted JSON.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping as MappingABC
from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Reserved categories
# ---------------------------------------------------------------------------

INCOME_CATEGORY_ID = "IN"
INTERNAL_CATEGORY_ID = "INTERNAL"


class TxType(StrEnum):
    """Debit/credit flag exactly as it appears in the ``Debit/Credit`` column."""

    DEBIT = "D"
    CREDIT = "C"


# ---------------------------------------------------------------------------
# Core records
# ---------------------------------------------------------------------------


def _as_conflict_set(value: Iterable[str] | None) -> frozenset[str] | None:
    if value is None:
        return None
    ids = frozenset(v for v in value if v)
    return ids or None


@dataclass(frozen=True, slots=True)
class Transaction:
    """A canonical bank transaction.

    ``amount`` is always a non-negative magnitude; direction lives in ``type``.
    ``category_id`` and ``conflicts`` are mutually exclusive: a transaction is
    either assigned, conflicted (two or more candidate categories), or neither.
    """

    id: str
    date: str
    amount: Decimal
    type: TxType
    beneficiary: str
    purpose: str
    original_row: MappingABC[str, str] = field(default_factory=dict, compare=False)
    category_id: str | None = None
    conflicts: frozenset[str] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", TxType(self.type))
        object.__setattr__(self, "conflicts", _as_conflict_set(self.conflicts))
        if self.category_id == "":
            object.__setattr__(self, "category_id", None)
        if self.conflicts is not None:
            if len(self.conflicts) < 2:
                raise ValueError("Transaction.conflicts must hold at least two category ids")
            if self.category_id is not None:
                raise ValueError("Transaction cannot have both category_id and conflicts")
        if self.amount < 0:
            raise ValueError("Transaction.amount must be a non-negative magnitude")

    @property
    def is_credit(self) -> bool:
        return self.type is TxType.CREDIT

    @property
    def is_unresolved(self) -> bool:
        return self.category_id is None

    def categorization_state(self) -> tuple[str | None, frozenset[str]]:
        """Return the comparable (category, conflicts) pair; order-insensitive."""
        return self.category_id, self.conflicts or frozenset()


@dataclass(frozen=True, slots=True)
class Category:
    id: str
    name: str
    color: str = "#3b82f6"
    budget: Decimal = Decimal("0")


@dataclass(frozen=True, slots=True)
class Mapping:
    """A categorization rule: case-insensitive substring ``pattern`` → category."""

    id: str
    pattern: str
    category_id: str


@dataclass(frozen=True, slots=True)
class ImportLog:
    id: str
    date: str
    filename: str
    count: int


SYSTEM_CATEGORIES: tuple[Category, ...] = (
    Category(id=INCOME_CATEGORY_ID, name="Income", color="#22c55e"),
    Category(id=INTERNAL_CATEGORY_ID, name="Internal / Ignored", color="#9ca3af"),
)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Outcome of rule evaluation: a single category, a conflict set, or nothing."""

    category_id: str | None = None
    conflicts: frozenset[str] | None = None

    @property
    def is_empty(self) -> bool:
        return self.category_id is None and self.conflicts is None


@dataclass(frozen=True, slots=True)
class RowError:
    """A recoverable per-row parse failure.

    ``index`` is the 0-based position among data rows (header excluded).
    """

    index: int
    row: MappingABC[str, str]
    message: str


@dataclass(frozen=True, slots=True)
class ParseResult:
    transactions: list[Transaction]
    errors: list[RowError]


# ---------------------------------------------------------------------------
# Rule interchange DTO
# ---------------------------------------------------------------------------


class RuleSpec(BaseModel):
    """One entry of the rule export/import JSON array.

    Patterns are kept verbatim (no whitespace stripping): merge-by-pattern
    compares exact strings and a trailing space changes what a rule matches.
    """

    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)

    pattern: str
    category_id: str = Field(alias="categoryId")

    @field_validator("pattern", "category_id")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must be non-empty")
        return v

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


__all__ = [
    "INCOME_CATEGORY_ID",
    "INTERNAL_CATEGORY_ID",
    "SYSTEM_CATEGORIES",
    "TxType",
    "Transaction",
    "Category",
    "Mapping",
    "ImportLog",
    "MatchResult",
    "RowError",
    "ParseResult",
    "RuleSpec",
]
