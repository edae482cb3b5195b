import json

import pytest
from typer.testing import CliRunner

from expense_tracker import api
from expense_tracker.cli import app
from expense_tracker.models import Category, Mapping
from tests.helpers.db import seed_ledger

runner = CliRunner()


@pytest.fixture
def ledger(database_url):
    seed_ledger(
        database_url=database_url,
        categories=[
            Category(id="groceries", name="Groceries"),
            Category(id="entertainment", name="Entertainment"),
            Category(id="subscriptions", name="Subscriptions"),
        ],
        mappings=[
            Mapping(id="m1", pattern="RIMI", category_id="groceries"),
            Mapping(id="m2", pattern="NETFLIX", category_id="entertainment"),
            Mapping(id="m3", pattern="FLIX", category_id="subscriptions"),
        ],
    )
    return database_url


def test_import_statement_prints_summary_and_row_errors(ledger, statement_csv):
    result = runner.invoke(app, ["import-statement", str(statement_csv)])

    assert result.exit_code == 0, result.output
    assert "Imported 5 transactions from statement.csv" in result.output
    assert "Skipped row 6: Invalid date format" in result.output
    assert "Skipped row 7: Invalid amount" in result.output


def test_import_statement_missing_file_is_an_error(ledger, tmp_path):
    result = runner.invoke(app, ["import-statement", str(tmp_path / "nope.csv")])
    assert result.exit_code == 1
    assert "Error: File not found" in result.output


def test_import_statement_with_wrong_header_is_an_error(ledger, tmp_path):
    bad = tmp_path / "bad.csv"
    bad.write_text("Date,Amount\n01.02.2024,1.00\n", encoding="utf-8")
    result = runner.invoke(app, ["import-statement", str(bad)])
    assert result.exit_code == 1
    assert "Error: Failed to parse statement" in result.output
    assert api.import_history() == []


def test_reapply_rules_asks_for_confirmation(ledger, statement_csv):
    runner.invoke(app, ["import-statement", str(statement_csv)])
    api.resolve_transaction("TX0001", "entertainment")

    declined = runner.invoke(app, ["reapply-rules"], input="n\n")
    assert declined.exit_code == 0
    assert "changes 1 transactions" in declined.output
    assert "Aborted" in declined.output
    assert api.get_transaction("TX0001").category_id == "entertainment"

    accepted = runner.invoke(app, ["reapply-rules", "--yes"])
    assert accepted.exit_code == 0
    assert "Updated 1 transactions." in accepted.output
    assert api.get_transaction("TX0001").category_id == "groceries"

    again = runner.invoke(app, ["reapply-rules", "--yes"])
    assert "No changes made." in again.output


def test_category_and_rule_commands(ledger):
    created = runner.invoke(app, ["add-category", "Eating Out", "--color", "#ff8800"])
    assert created.exit_code == 0, created.output
    assert created.output.startswith("Created\tcat-")
    category_id = created.output.split("\t")[1]

    dup = runner.invoke(app, ["add-category", "eating out"])
    assert dup.output.startswith(f"Exists\t{category_id}")

    bad = runner.invoke(app, ["add-category", "Travel", "--color", "blue"])
    assert bad.exit_code == 1
    assert "Error: Invalid color" in bad.output

    rule = runner.invoke(app, ["add-rule", "CAFE", category_id])
    assert rule.exit_code == 0, rule.output
    mapping_id = rule.output.split()[2].rstrip(":")

    missing = runner.invoke(app, ["add-rule", "BAR", "cat-missing"])
    assert missing.exit_code == 1
    assert "Error: category does not exist" in missing.output

    listed = runner.invoke(app, ["rules"])
    assert f"{mapping_id}\tCAFE\t{category_id}" in listed.output

    assert runner.invoke(app, ["delete-rule", mapping_id]).exit_code == 0
    gone = runner.invoke(app, ["delete-rule", mapping_id])
    assert gone.exit_code == 1
    assert "Error: rule not found" in gone.output


def test_delete_category_command(ledger, statement_csv):
    runner.invoke(app, ["import-statement", str(statement_csv)])

    result = runner.invoke(app, ["delete-category", "groceries", "--yes"])
    assert result.exit_code == 0, result.output
    assert "1 transactions unassigned, 1 rules removed" in result.output

    unknown = runner.invoke(app, ["delete-category", "groceries", "--yes"])
    assert unknown.exit_code == 1
    assert "Error: category not found" in unknown.output

    verify = runner.invoke(app, ["verify"])
    assert verify.exit_code == 0
    assert "OK" in verify.output


def test_export_and_import_rules_via_files(ledger, tmp_path):
    out = tmp_path / "rules.json"
    exported = runner.invoke(app, ["export-rules", "--output", str(out)])
    assert exported.exit_code == 0
    assert {r["pattern"] for r in json.loads(out.read_text("utf-8"))} == {"RIMI", "NETFLIX", "FLIX"}

    incoming = tmp_path / "incoming.json"
    incoming.write_text(
        json.dumps([{"pattern": "LIDL", "categoryId": "groceries"}, {"pattern": "RIMI", "categoryId": "x"}]),
        encoding="utf-8",
    )
    imported = runner.invoke(app, ["import-rules", str(incoming)])
    assert imported.exit_code == 0, imported.output
    assert "Added 1 new rules (1 skipped)" in imported.output

    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    failed = runner.invoke(app, ["import-rules", str(broken)])
    assert failed.exit_code == 1
    assert "Error: Failed to import rules" in failed.output


def test_resolve_with_explicit_category(ledger, statement_csv):
    runner.invoke(app, ["import-statement", str(statement_csv)])

    result = runner.invoke(app, ["resolve", "TX0003", "--category", "subscriptions"])
    assert result.exit_code == 0, result.output
    assert "Resolved TX0003 -> subscriptions" in result.output

    bad = runner.invoke(app, ["resolve", "TX0003", "--category", "cat-missing"])
    assert bad.exit_code == 1
    assert "Error: category does not exist" in bad.output


def test_resolve_interactively_offers_conflict_candidates(ledger, statement_csv, monkeypatch):
    runner.invoke(app, ["import-statement", str(statement_csv)])
    offered: list[list[str]] = []

    def _pick(categories, *, default=None):
        offered.append([c.id for c in categories])
        return "entertainment"

    monkeypatch.setattr("expense_tracker.term_ui.select_category", _pick)
    result = runner.invoke(app, ["resolve", "TX0003"])

    assert result.exit_code == 0, result.output
    assert offered == [["entertainment", "subscriptions"]]
    assert api.get_transaction("TX0003").category_id == "entertainment"


def test_unresolved_suggest_and_history(ledger, statement_csv):
    runner.invoke(app, ["import-statement", str(statement_csv)])

    unresolved = runner.invoke(app, ["unresolved"])
    lines = [ln for ln in unresolved.output.splitlines() if ln.startswith("TX")]
    assert [ln.split("\t")[0] for ln in lines] == ["TX0003", "TX0002", "TX0005"]
    assert lines[0].endswith("entertainment,subscriptions")

    suggest = runner.invoke(app, ["suggest", "--limit", "1"])
    assert "1\tJane Roe (LV11HABA0551000000002)" in suggest.output

    history = runner.invoke(app, ["import-history"])
    assert "\tstatement.csv\t5" in history.output


def test_ignored_accounts_command(ledger):
    result = runner.invoke(app, ["ignored-accounts", "--add", "LV11", "--add", "LV22", "--remove", "LV22"])
    assert result.exit_code == 0, result.output
    assert result.output.strip().splitlines()[-1] == "LV11"
    assert api.get_ignored_accounts() == ["LV11"]


def test_clear_command_confirms_then_clears(ledger, statement_csv):
    runner.invoke(app, ["import-statement", str(statement_csv)])

    declined = runner.invoke(app, ["clear", "--transactions-only"], input="n\n")
    assert "Aborted" in declined.output
    assert api.get_transaction("TX0001") is not None

    cleared = runner.invoke(app, ["clear", "--transactions-only", "--yes"])
    assert cleared.exit_code == 0, cleared.output
    assert "Cleared 5 transactions." in cleared.output
    assert api.get_transaction("TX0001") is None
    assert len(api.list_rules()) == 3

    everything = runner.invoke(app, ["clear", "--yes"])
    assert everything.exit_code == 0, everything.output
    assert api.list_rules() == []


def test_edit_category_command(ledger):
    result = runner.invoke(
        app, ["edit-category", "groceries", "--name", "Food", "--color", "#00aa00"]
    )
    assert result.exit_code == 0, result.output
    assert result.output.startswith("Updated\tgroceries\tFood\t#00aa00")

    clash = runner.invoke(app, ["edit-category", "groceries", "--name", "Subscriptions"])
    assert clash.exit_code == 1
    assert "Error: Category name already in use" in clash.output

    missing = runner.invoke(app, ["edit-category", "cat-missing", "--name", "X"])
    assert missing.exit_code == 1
    assert "Error: category not found" in missing.output


def test_verify_and_resolve_warn_about_deleted_conflict_candidates(
    ledger, statement_csv, monkeypatch
):
    runner.invoke(app, ["import-statement", str(statement_csv)])
    runner.invoke(app, ["delete-category", "entertainment", "--yes"])

    verify = runner.invoke(app, ["verify"])
    assert verify.exit_code == 0
    assert "Warning: transaction TX0003 lists deleted categories" in verify.output
    assert "OK" in verify.output

    offered: list[list[str]] = []

    def _pick(categories, *, default=None):
        offered.append([c.id for c in categories])
        return "subscriptions"

    monkeypatch.setattr("expense_tracker.term_ui.select_category", _pick)
    result = runner.invoke(app, ["resolve", "TX0003"])
    assert result.exit_code == 0, result.output
    assert "Warning: deleted conflict candidates not offered: entertainment" in result.output
    assert offered == [["subscriptions"]]


@pytest.mark.parametrize(
    "args",
    [["reapply-rules", "--yes"], ["suggest"]],
)
def test_invalid_environment_setting_is_reported_as_error(ledger, monkeypatch, args):
    monkeypatch.setenv("EXPENSE_TRACKER_SUGGESTION_LIMIT", "0")
    result = runner.invoke(app, args)
    assert result.exit_code == 1
    assert "Error: EXPENSE_TRACKER_SUGGESTION_LIMIT must be a positive integer" in result.output


def test_import_with_invalid_environment_setting_saves_nothing(ledger, statement_csv, monkeypatch):
    monkeypatch.setenv("EXPENSE_TRACKER_NORMALIZE_WORKERS", "many")
    result = runner.invoke(app, ["import-statement", str(statement_csv)])
    assert result.exit_code == 1
    assert "Error: EXPENSE_TRACKER_NORMALIZE_WORKERS must be an integer" in result.output
    assert api.import_history() == []
