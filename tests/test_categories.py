from decimal import Decimal

import pytest
from db.client import session_scope

from expense_tracker.categories import (
    create_category,
    ensure_system_categories,
    normalize_name,
    update_category,
    validate_name,
)
from expense_tracker.integrity import UnknownCategoryError
from expense_tracker.models import INCOME_CATEGORY_ID, INTERNAL_CATEGORY_ID, Mapping
from expense_tracker.persistence import LedgerStore


def test_normalize_and_validate_name():
    assert normalize_name("  Eating   out ") == "Eating out"
    assert validate_name("Groceries").ok
    assert not validate_name("   ").ok
    assert validate_name("x" * 64).ok
    v = validate_name("x" * 65)
    assert not v.ok and "64" in (v.reason or "")


def test_create_category_is_idempotent_on_name():
    with session_scope() as s:
        first = create_category(LedgerStore(s), "Eating  Out", color="#ff0000", budget="150")
    with session_scope() as s:
        second = create_category(LedgerStore(s), "eating out")

    assert first.created is True
    assert first.category.id.startswith("cat-")
    assert first.category.name == "Eating Out"
    assert first.category.budget == Decimal("150")
    assert second.created is False
    assert second.category.id == first.category.id

    with session_scope() as s:
        stored = LedgerStore(s).get_category(first.category.id)
    assert stored is not None and stored.color == "#ff0000"


@pytest.mark.parametrize(
    ("name", "color", "budget"),
    [
        ("", "#3b82f6", 0),
        ("x" * 65, "#3b82f6", 0),
        ("Travel", "blue", 0),
        ("Travel", "#3b82f6", -5),
        ("Travel", "#3b82f6", "lots"),
    ],
)
def test_create_category_rejects_invalid_input(name, color, budget):
    with pytest.raises(ValueError):
        with session_scope() as s:
            create_category(LedgerStore(s), name, color=color, budget=budget)


def test_system_categories_are_recreated_after_deletion():
    with session_scope() as s:
        store = LedgerStore(s)
        store.delete_category(INCOME_CATEGORY_ID)
        assert not store.category_exists(INCOME_CATEGORY_ID)

        created = ensure_system_categories(store)
        assert [c.id for c in created] == [INCOME_CATEGORY_ID]
        assert store.category_exists(INCOME_CATEGORY_ID)
        assert store.category_exists(INTERNAL_CATEGORY_ID)
        assert ensure_system_categories(store) == []


def test_update_category_edits_in_place_and_keeps_references():
    with session_scope() as s:
        store = LedgerStore(s)
        cat = create_category(store, "Food").category
        store.add_mapping(Mapping(id="m1", pattern="RIMI", category_id=cat.id))

    with session_scope() as s:
        updated = update_category(
            LedgerStore(s), cat.id, name="  Groceries ", color="#00ff00", budget="200.50"
        )

    assert updated.id == cat.id
    assert updated.name == "Groceries"
    assert updated.color == "#00ff00"
    assert updated.budget == Decimal("200.50")
    with session_scope() as s:
        store = LedgerStore(s)
        assert store.get_category(cat.id) == updated
        assert [m.category_id for m in store.get_mappings()] == [cat.id]


def test_update_category_only_touches_given_fields():
    with session_scope() as s:
        cat = create_category(LedgerStore(s), "Rent", color="#123456", budget=900).category
    with session_scope() as s:
        updated = update_category(LedgerStore(s), cat.id, name="RENT")

    assert updated.name == "RENT"
    assert updated.color == "#123456"
    assert updated.budget == Decimal("900")


def test_update_category_rejects_a_name_held_by_another_category():
    with session_scope() as s:
        store = LedgerStore(s)
        food = create_category(store, "Food").category
        create_category(store, "Travel")

    with pytest.raises(ValueError, match="already in use"):
        with session_scope() as s:
            update_category(LedgerStore(s), food.id, name="travel")

    with session_scope() as s:
        assert LedgerStore(s).get_category(food.id).name == "Food"


def test_update_category_validates_input_and_existence():
    with session_scope() as s:
        cat = create_category(LedgerStore(s), "Food").category

    with pytest.raises(UnknownCategoryError):
        with session_scope() as s:
            update_category(LedgerStore(s), "cat-missing", name="X")
    for bad in ({"name": "  "}, {"color": "red"}, {"budget": -1}):
        with pytest.raises(ValueError):
            with session_scope() as s:
                update_category(LedgerStore(s), cat.id, **bad)
