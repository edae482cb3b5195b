import json

import pytest

from expense_tracker.models import Mapping
from expense_tracker.rules_io import RuleImportError, export_rules, import_rules

EXISTING = [
    Mapping(id="m1", pattern="RIMI", category_id="groceries"),
    Mapping(id="m2", pattern="NETFLIX", category_id="subscriptions"),
]


def test_export_is_a_json_array_of_pattern_and_category():
    payload = export_rules(EXISTING)
    assert json.loads(payload) == [
        {"pattern": "RIMI", "categoryId": "groceries"},
        {"pattern": "NETFLIX", "categoryId": "subscriptions"},
    ]
    assert payload.startswith("[\n  {")


def test_export_of_no_rules_is_an_empty_array():
    assert json.loads(export_rules([])) == []


def test_import_merges_by_exact_pattern():
    text = json.dumps(
        [
            {"pattern": "RIMI", "categoryId": "dining"},
            {"pattern": "rimi", "categoryId": "groceries"},
            {"pattern": "LIDL", "categoryId": "groceries"},
            {"pattern": "LIDL", "categoryId": "dining"},
        ]
    )
    result = import_rules(text, EXISTING)

    assert [(m.pattern, m.category_id) for m in result.added] == [
        ("rimi", "groceries"),
        ("LIDL", "groceries"),
    ]
    assert result.skipped == 2
    assert all(m.id.startswith("map-imp-") for m in result.added)
    assert len({m.id for m in result.added}) == 2


def test_incomplete_entries_are_skipped():
    text = json.dumps(
        [
            {"pattern": "LIDL"},
            {"categoryId": "groceries"},
            {"pattern": "", "categoryId": "groceries"},
            {"pattern": "MAXIMA", "categoryId": None},
            "MAXIMA",
            {"pattern": "MAXIMA", "categoryId": "groceries", "extra": 1},
        ]
    )
    result = import_rules(text, [])
    assert [m.pattern for m in result.added] == ["MAXIMA"]
    assert result.skipped == 5


def test_unknown_categories_are_skipped_when_restricted():
    text = json.dumps(
        [
            {"pattern": "LIDL", "categoryId": "groceries"},
            {"pattern": "CINEMA", "categoryId": "fun"},
        ]
    )
    result = import_rules(text, [], known_category_ids={"groceries"})
    assert [m.pattern for m in result.added] == ["LIDL"]
    assert result.skipped == 1


@pytest.mark.parametrize("text", ["not json", "{", '{"pattern": "X", "categoryId": "y"}', "42"])
def test_malformed_payload_is_rejected(text):
    with pytest.raises(RuleImportError):
        import_rules(text, EXISTING)


def test_export_then_import_into_same_rules_adds_nothing():
    result = import_rules(export_rules(EXISTING), EXISTING)
    assert result.added == []
    assert result.skipped == 2
