# ruff: noqa: I001
"""CLI for the ``expense_tracker`` package.

A Typer-based console interface over :mod:`expense_tracker.api`. Environment
variables (``DATABASE_URL``, ``EXPENSE_TRACKER_*``) are loaded from a local
``.env`` using ``python-dotenv`` in the root callback. Failures are reported
as ``Error: ...`` on stderr with exit code 1.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from . import api
from .integrity import CascadeIntegrityError, ReferentialIntegrityError, UnknownCategoryError
from .logging_setup import configure_logging
from .models import Transaction
from .normalizers import StatementFormatError
from .rules_io import RuleImportError

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used as default values below.
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
YES_OPTION: OptionInfo = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt.")


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _read_text(path: Path) -> str:
    with open(path, encoding="utf-8-sig", newline="") as f:
        return f.read()


def _format_tx(tx: Transaction) -> str:
    state = ",".join(sorted(tx.conflicts)) if tx.conflicts else (tx.category_id or "-")
    return f"{tx.id}\t{tx.date}\t{tx.type.value}\t{tx.amount:.2f}\t{tx.beneficiary}\t{state}"


# ---- Command handlers ---------------------------------------------------------


def cmd_import_statement(path: str, *, database_url: str | None = None) -> int:
    """Import one statement file and print a summary. Returns the exit code."""

    try:
        text = _read_text(Path(path))
    except FileNotFoundError:
        return _error(f"File not found: {path}")
    except PermissionError:
        return _error(f"Permission denied: {path}")
    except UnicodeDecodeError as e:
        return _error(f"'{path}' is not UTF-8 text: {e}")

    try:
        summary = api.import_statement(text, filename=Path(path).name, database_url=database_url)
    except StatementFormatError as e:
        return _error(f"Failed to parse statement: {e}")
    except ValueError as e:
        # Invalid EXPENSE_TRACKER_* setting.
        return _error(str(e))

    for err in summary.errors:
        print(f"Skipped row {err.index + 1}: {err.message}")
    print(
        f"Imported {summary.imported} transactions from {summary.filename} "
        f"({summary.assigned} assigned, {summary.conflicted} conflicted, "
        f"{summary.unassigned} unassigned)"
    )
    return 0


def cmd_resolve(
    tx_id: str,
    *,
    category_id: str | None,
    database_url: str | None = None,
    select_category_fn=None,
) -> int:
    """Resolve one transaction, prompting for the category when not given.

    The picker offers the transaction's conflict candidates when it has any,
    otherwise every category.
    """

    if category_id is None:
        tx = api.get_transaction(tx_id, database_url=database_url)
        if tx is None:
            return _error(f"transaction not found: {tx_id!r}")
        categories = api.list_categories(database_url=database_url)
        if tx.conflicts:
            gone = sorted(tx.conflicts - {c.id for c in categories})
            if gone:
                print(f"Warning: deleted conflict candidates not offered: {', '.join(gone)}")
            categories = [c for c in categories if c.id in tx.conflicts] or categories
        if select_category_fn is None:
            from .term_ui import select_category as select_category_fn

        print(_format_tx(tx))
        category_id = select_category_fn(categories, default=tx.category_id)
        if category_id is None:
            print("Aborted.")
            return 1

    try:
        resolved = api.resolve_transaction(tx_id, category_id, database_url=database_url)
    except LookupError as e:
        return _error(str(e))
    except ReferentialIntegrityError as e:
        return _error(str(e))
    print(f"Resolved {resolved.id} -> {resolved.category_id}")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import bank statement CSVs and categorize transactions with substring rules. "
        "Loads DATABASE_URL from a local .env before running."
    ),
)


@app.command("import-statement")
def import_statement_cmd(
    csv_path: Annotated[Path, typer.Argument(help="Statement CSV export to import.")],
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Parse, categorize and persist a statement export."""

    raise typer.Exit(cmd_import_statement(str(csv_path), database_url=database_url))


@app.command("reapply-rules")
def reapply_rules_cmd(
    *,
    yes: bool = YES_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Recompute every transaction from the current rules (overwrites manual choices)."""

    try:
        preview = api.reapply_rules(database_url=database_url, dry_run=True)
        if preview.change_count == 0:
            print("No changes made.")
            return
        if not yes and not typer.confirm(
            f"Reapplying rules changes {preview.change_count} transactions and overwrites "
            "manual choices. Continue?"
        ):
            print("Aborted; nothing saved.")
            return
        result = api.reapply_rules(database_url=database_url)
    except ValueError as e:
        raise typer.Exit(_error(str(e))) from None
    print(f"Updated {result.change_count} transactions.")


@app.command("add-category")
def add_category_cmd(
    name: Annotated[str, typer.Argument(help="Category name (1..64 characters).")],
    *,
    color: str | None = typer.Option(None, help="Hex color, e.g. #3b82f6."),
    budget: str = typer.Option("0", help="Monthly budget (non-negative)."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    try:
        res = api.add_category(name, color=color, budget=budget, database_url=database_url)
    except ValueError as e:
        raise typer.Exit(_error(str(e))) from None
    verb = "Created" if res.created else "Exists"
    print(f"{verb}\t{res.category.id}\t{res.category.name}")


@app.command("edit-category")
def edit_category_cmd(
    category_id: Annotated[str, typer.Argument(help="Id of the category to edit.")],
    *,
    name: str | None = typer.Option(None, help="New name (1..64 characters)."),
    color: str | None = typer.Option(None, help="New hex color, e.g. #3b82f6."),
    budget: str | None = typer.Option(None, help="New monthly budget (non-negative)."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Rename, recolor or re-budget a category; its id, rules and transactions stay."""

    try:
        c = api.update_category(
            category_id, name=name, color=color, budget=budget, database_url=database_url
        )
    except UnknownCategoryError as e:
        raise typer.Exit(_error(str(e))) from None
    except ValueError as e:
        raise typer.Exit(_error(str(e))) from None
    print(f"Updated\t{c.id}\t{c.name}\t{c.color}\t{c.budget}")


@app.command("categories")
def categories_cmd(*, database_url: str | None = DATABASE_URL_OPTION) -> None:
    for c in api.list_categories(database_url=database_url):
        print(f"{c.id}\t{c.name}\t{c.color}\t{c.budget}")


@app.command("delete-category")
def delete_category_cmd(
    category_id: Annotated[str, typer.Argument(help="Id of the category to delete.")],
    *,
    yes: bool = YES_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Delete a category, its rules, and unassign its transactions."""

    if not yes and not typer.confirm(
        f"Delete category {category_id}? Its rules are removed and its transactions "
        "become unassigned."
    ):
        print("Aborted.")
        return
    try:
        report = api.delete_category(category_id, database_url=database_url)
    except UnknownCategoryError as e:
        raise typer.Exit(_error(str(e))) from None
    except CascadeIntegrityError as e:
        raise typer.Exit(_error(str(e))) from None
    print(
        f"Deleted category {report.category_id}: {report.transactions_cleared} transactions "
        f"unassigned, {report.mappings_deleted} rules removed"
    )


@app.command("add-rule")
def add_rule_cmd(
    pattern: Annotated[str, typer.Argument(help="Case-insensitive substring to match.")],
    category_id: Annotated[str, typer.Argument(help="Category id to assign.")],
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    try:
        mapping = api.add_rule(pattern, category_id, database_url=database_url)
    except ValueError as e:
        raise typer.Exit(_error(str(e))) from None
    print(f"Added rule {mapping.id}: {mapping.pattern!r} -> {mapping.category_id}")


@app.command("rules")
def rules_cmd(*, database_url: str | None = DATABASE_URL_OPTION) -> None:
    for m in api.list_rules(database_url=database_url):
        print(f"{m.id}\t{m.pattern}\t{m.category_id}")


@app.command("delete-rule")
def delete_rule_cmd(
    mapping_id: Annotated[str, typer.Argument(help="Id of the rule to delete.")],
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    if not api.delete_rule(mapping_id, database_url=database_url):
        raise typer.Exit(_error(f"rule not found: {mapping_id!r}"))
    print(f"Deleted rule {mapping_id}")


@app.command("export-rules")
def export_rules_cmd(
    *,
    output: Path | None = typer.Option(None, "--output", "-o", help="Write to a file."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Export rules as a JSON array of {pattern, categoryId}."""

    payload = api.export_rules_json(database_url=database_url)
    if output is None:
        print(payload)
        return
    output.write_text(payload + "\n", encoding="utf-8")
    print(f"Wrote rules to {output}")


@app.command("import-rules")
def import_rules_cmd(
    json_path: Annotated[Path, typer.Argument(help="Rules JSON produced by export-rules.")],
    *,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Merge rules from a JSON export; existing patterns are kept."""

    try:
        text = _read_text(json_path)
    except (OSError, UnicodeDecodeError) as e:
        raise typer.Exit(_error(f"cannot read {json_path}: {e}")) from None
    try:
        result = api.import_rules_json(text, database_url=database_url)
    except RuleImportError as e:
        raise typer.Exit(_error(f"Failed to import rules: {e}")) from None
    print(f"Import complete. Added {result.added_count} new rules ({result.skipped} skipped).")


@app.command("resolve")
def resolve_cmd(
    tx_id: Annotated[str, typer.Argument(help="Transaction id.")],
    *,
    category: str | None = typer.Option(
        None, "--category", "-c", help="Category id; omit to pick interactively."
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Assign a category to a transaction by hand (clears any conflict)."""

    raise typer.Exit(cmd_resolve(tx_id, category_id=category, database_url=database_url))


@app.command("unresolved")
def unresolved_cmd(*, database_url: str | None = DATABASE_URL_OPTION) -> None:
    """List transactions without a category (conflicts first)."""

    for tx in api.list_unresolved(database_url=database_url):
        print(_format_tx(tx))


@app.command("suggest")
def suggest_cmd(
    *,
    limit: int | None = typer.Option(None, min=1, help="Number of suggestions."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Show frequent counterparties among unassigned transactions."""

    try:
        suggestions = api.suggest(limit=limit, database_url=database_url)
    except ValueError as e:
        raise typer.Exit(_error(str(e))) from None
    for s in suggestions:
        print(f"{s.count}\t{s.name}")


@app.command("ignored-accounts")
def ignored_accounts_cmd(
    *,
    add: list[str] | None = typer.Option(None, "--add", help="Own account to treat as internal."),
    remove: list[str] | None = typer.Option(None, "--remove", help="Account to stop ignoring."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Show or edit the own-account identifiers used for internal transfers."""

    try:
        for acc in add or []:
            api.add_ignored_account(acc, database_url=database_url)
    except ValueError as e:
        raise typer.Exit(_error(str(e))) from None
    for acc in remove or []:
        api.remove_ignored_account(acc, database_url=database_url)
    for acc in api.get_ignored_accounts(database_url=database_url):
        print(acc)


@app.command("import-history")
def import_history_cmd(*, database_url: str | None = DATABASE_URL_OPTION) -> None:
    for log in api.import_history(database_url=database_url):
        print(f"{log.date}\t{log.filename}\t{log.count}")


@app.command("verify")
def verify_cmd(*, database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Check category references and conflict sets; exit 1 on any violation.

    Conflict sets that still name deleted categories are printed as warnings
    and do not fail the check; ``reapply-rules`` recomputes them.
    """

    problems = api.check_integrity(database_url=database_url)
    for p in problems:
        print(p)
    for w in api.integrity_warnings(database_url=database_url):
        print(f"Warning: {w}")
    if problems:
        raise typer.Exit(1)
    print("OK")


@app.command("clear")
def clear_cmd(
    *,
    transactions_only: bool = typer.Option(
        False, "--transactions-only", help="Keep categories and rules."
    ),
    yes: bool = YES_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Delete imported data. Settings such as ignored accounts are kept."""

    if transactions_only:
        prompt = (
            "Delete ALL imported transactions and import history? "
            "Categories and rules are kept."
        )
    else:
        prompt = (
            "Delete ALL transactions, rules, categories and import history? "
            "This cannot be undone."
        )
    if not yes and not typer.confirm(prompt):
        print("Aborted.")
        return
    if transactions_only:
        removed = api.clear_transactions(database_url=database_url)
        print(f"Cleared {removed} transactions.")
    else:
        removed = api.clear_all(database_url=database_url)
        print(f"Cleared all data ({removed} transactions).")


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    log_level: str | None = typer.Option(
        None, help="Log level (falls back to EXPENSE_TRACKER_LOG_LEVEL, then INFO)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    try:
        configure_logging(log_level)
    except ValueError as e:
        raise typer.Exit(_error(str(e))) from None

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
