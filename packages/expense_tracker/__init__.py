"""Public interface for the ``expense_tracker`` package.

Re-exports the pure categorization core (normalizer, matcher, recompute) and
the models it works on. The DB-backed orchestration lives in
:mod:`expense_tracker.api` and the console interface in
:mod:`expense_tracker.cli`.
"""

from .matcher import categorize_for_import, match, resolve_manually
from .models import (
    INCOME_CATEGORY_ID,
    INTERNAL_CATEGORY_ID,
    Category,
    ImportLog,
    Mapping,
    MatchResult,
    ParseResult,
    RowError,
    Transaction,
    TxType,
)
from .normalizers import StatementFormatError, parse_bank_csv
from .recompute import ReapplyResult, reapply

__all__ = [
    # Core operations
    "parse_bank_csv",
    "match",
    "categorize_for_import",
    "resolve_manually",
    "reapply",
    # Models / types
    "INCOME_CATEGORY_ID",
    "INTERNAL_CATEGORY_ID",
    "TxType",
    "Transaction",
    "Category",
    "Mapping",
    "ImportLog",
    "MatchResult",
    "RowError",
    "ParseResult",
    "ReapplyResult",
    "StatementFormatError",
]
