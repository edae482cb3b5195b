"""Category domain helpers and service operations.

Small, validated operations over the ``et_categories`` table, used by the CLI
and the API layer. Names are validated here so every entrypoint applies the
same rules before touching the database.

Exports
-------
- ``create_category(...)``: idempotent creation with case-insensitive name
  conflict detection. Returns the created/existing category and a
  ``created`` flag.
- ``normalize_name(...)`` / ``validate_name(...)``: shared by the terminal UI
  for early feedback.
- ``ensure_system_categories(...)``: recreate the reserved income/internal
  categories when missing.
- ``update_category(...)``: edit name, color or budget of an existing id.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation

from db.models.ledger import EtCategory
from sqlalchemy import func, select

from .integrity import IntegrityManager, UnknownCategoryError
from .logging_setup import get_logger
from .models import Category
from .persistence import LedgerStore, _category_from_row

logger = get_logger("expense_tracker.categories")

DEFAULT_COLOR = "#3b82f6"

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")

# ---------------------------
# Name normalization/validation
# ---------------------------


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced representation of ``name``.

    Does not change case.
    """

    return " ".join(name.strip().split())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, min_len: int = 1, max_len: int = 64) -> NameValidation:
    """Enforce length bounds (default 1..64) on the normalized name."""

    n = normalize_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Name cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Name must be at most {max_len} characters")
    return NameValidation(True, None)


# ---------------------------
# Service operations
# ---------------------------


@dataclass(frozen=True, slots=True)
class CreateCategoryResult:
    category: Category
    created: bool


def find_category_by_name(store: LedgerStore, name: str) -> Category | None:
    """Case-insensitive lookup on the normalized name."""

    n = normalize_name(name).lower()
    row = (
        store.session.execute(select(EtCategory).where(func.lower(EtCategory.name) == n))
        .scalars()
        .first()
    )
    return _category_from_row(row) if row is not None else None


def create_category(
    store: LedgerStore,
    name: str,
    color: str = DEFAULT_COLOR,
    budget: Decimal | int | str = 0,
) -> CreateCategoryResult:
    """Create a category unless one with the same name exists (case-insensitive).

    Parameters
    ----------
    store:
        Store bound to the caller's session (callers own the transaction scope).
    name:
        Display name; trimmed and single-spaced before validation.
    color:
        ``#rrggbb`` hex color.
    budget:
        Non-negative monthly budget.

    Returns
    -------
    CreateCategoryResult
        The new category with ``created=True``, or the existing one with
        ``created=False``.
    """

    name_n = _checked_name(name)
    _check_color(color)
    budget_d = _checked_budget(budget)

    existing = find_category_by_name(store, name_n)
    if existing is not None:
        return CreateCategoryResult(category=existing, created=False)

    category = Category(id=f"cat-{uuid.uuid4().hex}", name=name_n, color=color, budget=budget_d)
    IntegrityManager(store).add_category(category)
    logger.info("created category %s (%s)", category.id, category.name)
    return CreateCategoryResult(category=category, created=True)


def update_category(
    store: LedgerStore,
    category_id: str,
    *,
    name: str | None = None,
    color: str | None = None,
    budget: Decimal | int | str | None = None,
) -> Category:
    """Rename, recolor or re-budget an existing category in place.

    The id never changes, so rules and transactions keep pointing at it.
    Fields left as ``None`` are unchanged. A new name may differ from the
    current one only in case; a name held by another category is rejected.

    Raises
    ------
    UnknownCategoryError
        No category has ``category_id``.
    ValueError
        Invalid name, color or budget, or a name collision.
    """

    current = store.get_category(category_id)
    if current is None:
        raise UnknownCategoryError(f"category not found: {category_id!r}")

    changes: dict[str, object] = {}
    if name is not None:
        name_n = _checked_name(name)
        clash = find_category_by_name(store, name_n)
        if clash is not None and clash.id != category_id:
            raise ValueError(f"Category name already in use: {clash.name!r} ({clash.id})")
        changes["name"] = name_n
    if color is not None:
        _check_color(color)
        changes["color"] = color
    if budget is not None:
        changes["budget"] = _checked_budget(budget)

    if not changes:
        return current
    updated = replace(current, **changes)
    store.add_category(updated)
    logger.info("updated category %s: %s", category_id, ", ".join(sorted(changes)))
    return updated


def _checked_name(name: str) -> str:
    name_n = normalize_name(name)
    v = validate_name(name_n)
    if not v.ok:
        raise ValueError(f"Invalid category name: {v.reason}")
    return name_n


def _check_color(color: str) -> None:
    if not _COLOR_RE.match(color):
        raise ValueError(f"Invalid color {color!r}; expected #rrggbb")


def _checked_budget(budget: Decimal | int | str) -> Decimal:
    try:
        budget_d = Decimal(str(budget))
    except InvalidOperation:
        raise ValueError(f"Invalid budget: {budget!r}") from None
    if not budget_d.is_finite() or budget_d < 0:
        raise ValueError(f"Budget must be a non-negative number (got {budget!r})")
    return budget_d


def ensure_system_categories(store: LedgerStore) -> list[Category]:
    """Recreate the reserved income/internal categories; returns those created."""

    created = store.ensure_system_categories()
    for cat in created:
        logger.info("restored system category %s", cat.id)
    return created


__all__ = [
    "DEFAULT_COLOR",
    "CreateCategoryResult",
    "NameValidation",
    "create_category",
    "ensure_system_categories",
    "find_category_by_name",
    "normalize_name",
    "update_category",
    "validate_name",
]
