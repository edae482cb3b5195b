"""Public API and orchestration for the ``expense_tracker`` package.

Each function opens its own ``db.client.session_scope`` so callers (the CLI,
scripts, tests) get one committed unit of work per call. ``database_url``
defaults to the ``DATABASE_URL`` environment variable.

Functions that write categories, rules or transaction assignments use
:func:`~expense_tracker.integrity.category_write_scope` instead, so the
category write lock covers the whole unit of work up to its commit.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from db.client import session_scope

from .categories import (
    CreateCategoryResult,
    create_category,
    ensure_system_categories,
    update_category as _update_category,
)
from .config import CoreConfig, load_config
from .integrity import CascadeReport, IntegrityManager, category_write_scope
from .logging_setup import get_logger
from .matcher import categorize_for_import
from .models import Category, ImportLog, Mapping, RowError, Transaction
from .normalizers import parse_bank_csv
from .persistence import LedgerStore
from .recompute import ReapplyResult, reapply
from .rules_io import RuleImportResult, export_rules, import_rules
from .suggestions import Suggestion, suggest_patterns

logger = get_logger("expense_tracker.api")


@dataclass(frozen=True, slots=True)
class ImportSummary:
    filename: str
    imported: int
    assigned: int
    conflicted: int
    unassigned: int
    log_id: str
    errors: list[RowError] = field(default_factory=list)


def _carry_over(parsed: list[Transaction], store: LedgerStore) -> list[Transaction]:
    """Keep the stored categorization of transactions seen in an earlier import."""

    stored = store.get_transactions_by_ids(t.id for t in parsed)
    out: list[Transaction] = []
    for tx in parsed:
        prev = stored.get(tx.id)
        if prev is None:
            out.append(tx)
        else:
            out.append(replace(tx, category_id=prev.category_id, conflicts=prev.conflicts))
    return out


def import_statement(
    text: str,
    *,
    filename: str,
    database_url: str | None = None,
) -> ImportSummary:
    """Parse a statement export, categorize it and persist it.

    Row errors are reported in the summary and do not stop the import. A
    statement without the required header raises
    :class:`~expense_tracker.normalizers.StatementFormatError` and saves nothing.
    """

    with category_write_scope(database_url=database_url) as session:
        store = LedgerStore(session)
        cfg = load_config(store)
        parsed = parse_bank_csv(text, workers=cfg.normalize_workers)

        ensure_system_categories(store)
        mappings = store.get_mappings()
        categorized = [
            categorize_for_import(
                tx,
                mappings,
                cfg.ignored_accounts,
                income_category_id=cfg.income_category_id,
                internal_category_id=cfg.internal_category_id,
            )
            for tx in _carry_over(parsed.transactions, store)
        ]
        store.save_transactions(categorized)

        log = ImportLog(
            id=f"log-{uuid.uuid4().hex}",
            date=datetime.now(UTC).isoformat(),
            filename=filename,
            count=len(categorized),
        )
        store.add_import_log(log)

    conflicted = sum(1 for t in categorized if t.conflicts is not None)
    assigned = sum(1 for t in categorized if t.category_id is not None)
    logger.info(
        "imported %s: %d transactions (%d assigned, %d conflicted), %d row errors",
        filename,
        len(categorized),
        assigned,
        conflicted,
        len(parsed.errors),
    )
    return ImportSummary(
        filename=filename,
        imported=len(categorized),
        assigned=assigned,
        conflicted=conflicted,
        unassigned=len(categorized) - assigned - conflicted,
        log_id=log.id,
        errors=list(parsed.errors),
    )


def reapply_rules(*, database_url: str | None = None, dry_run: bool = False) -> ReapplyResult:
    """Recompute every stored transaction from the current rules.

    Overwrites manual choices. With ``dry_run`` the result is computed (so the
    caller can show the change count and ask for confirmation) but not saved.
    """

    with category_write_scope(database_url=database_url) as session:
        store = LedgerStore(session)
        if not dry_run:
            ensure_system_categories(store)
        cfg = load_config(store)
        result = reapply(
            store.get_all_transactions(),
            store.get_mappings(),
            cfg.ignored_accounts,
            income_category_id=cfg.income_category_id,
            internal_category_id=cfg.internal_category_id,
        )
        if dry_run:
            session.rollback()
        else:
            store.save_transactions(result.changed)
    return result


def delete_category(category_id: str, *, database_url: str | None = None) -> CascadeReport:
    with category_write_scope(database_url=database_url) as session:
        return IntegrityManager(LedgerStore(session)).delete_category(category_id)


def add_category(
    name: str,
    *,
    color: str | None = None,
    budget: str | int = 0,
    database_url: str | None = None,
) -> CreateCategoryResult:
    with category_write_scope(database_url=database_url) as session:
        store = LedgerStore(session)
        if color is None:
            return create_category(store, name, budget=budget)
        return create_category(store, name, color=color, budget=budget)


def update_category(
    category_id: str,
    *,
    name: str | None = None,
    color: str | None = None,
    budget: str | int | None = None,
    database_url: str | None = None,
) -> Category:
    with category_write_scope(database_url=database_url) as session:
        return _update_category(
            LedgerStore(session), category_id, name=name, color=color, budget=budget
        )


def list_categories(*, database_url: str | None = None) -> list[Category]:
    with session_scope(database_url=database_url) as session:
        return LedgerStore(session).get_categories()


def add_rule(pattern: str, category_id: str, *, database_url: str | None = None) -> Mapping:
    with category_write_scope(database_url=database_url) as session:
        return IntegrityManager(LedgerStore(session)).add_mapping(pattern, category_id)


def delete_rule(mapping_id: str, *, database_url: str | None = None) -> bool:
    with category_write_scope(database_url=database_url) as session:
        return LedgerStore(session).delete_mapping(mapping_id) > 0


def list_rules(*, database_url: str | None = None) -> list[Mapping]:
    with session_scope(database_url=database_url) as session:
        return LedgerStore(session).get_mappings()


def resolve_transaction(
    tx_id: str, category_id: str, *, database_url: str | None = None
) -> Transaction:
    with category_write_scope(database_url=database_url) as session:
        return IntegrityManager(LedgerStore(session)).resolve_transaction(tx_id, category_id)


def get_transaction(tx_id: str, *, database_url: str | None = None) -> Transaction | None:
    with session_scope(database_url=database_url) as session:
        return LedgerStore(session).get_transaction(tx_id)


def export_rules_json(*, database_url: str | None = None) -> str:
    with session_scope(database_url=database_url) as session:
        return export_rules(LedgerStore(session).get_mappings())


def import_rules_json(text: str, *, database_url: str | None = None) -> RuleImportResult:
    """Merge a rule export into the stored rules (by exact pattern).

    Raises :class:`~expense_tracker.rules_io.RuleImportError` on malformed
    payloads before anything is written.
    """

    with category_write_scope(database_url=database_url) as session:
        store = LedgerStore(session)
        result = import_rules(
            text,
            store.get_mappings(),
            known_category_ids={c.id for c in store.get_categories()},
        )
        manager = IntegrityManager(store)
        for m in result.added:
            manager.add_mapping(m.pattern, m.category_id, mapping_id=m.id)
    return result


def list_unresolved(*, database_url: str | None = None) -> list[Transaction]:
    """Transactions without a category, conflicted ones first."""

    with session_scope(database_url=database_url) as session:
        txs = [t for t in LedgerStore(session).get_all_transactions() if t.is_unresolved]
    return sorted(txs, key=lambda t: t.conflicts is None)


def suggest(*, limit: int | None = None, database_url: str | None = None) -> list[Suggestion]:
    with session_scope(database_url=database_url) as session:
        store = LedgerStore(session)
        cfg = load_config(store)
        return suggest_patterns(store.get_all_transactions(), limit=limit or cfg.suggestion_limit)


def get_config(*, database_url: str | None = None) -> CoreConfig:
    with session_scope(database_url=database_url) as session:
        return load_config(LedgerStore(session))


def get_ignored_accounts(*, database_url: str | None = None) -> list[str]:
    with session_scope(database_url=database_url) as session:
        return LedgerStore(session).get_ignored_accounts()


def add_ignored_account(account: str, *, database_url: str | None = None) -> list[str]:
    with session_scope(database_url=database_url) as session:
        return LedgerStore(session).add_ignored_account(account)


def remove_ignored_account(account: str, *, database_url: str | None = None) -> list[str]:
    with session_scope(database_url=database_url) as session:
        return LedgerStore(session).remove_ignored_account(account)


def import_history(*, database_url: str | None = None) -> list[ImportLog]:
    with session_scope(database_url=database_url) as session:
        return LedgerStore(session).get_import_logs()


def check_integrity(*, database_url: str | None = None) -> list[str]:
    with session_scope(database_url=database_url) as session:
        return IntegrityManager(LedgerStore(session)).verify()


def integrity_warnings(*, database_url: str | None = None) -> list[str]:
    """Conflict sets that still list deleted categories (fixed by a reapply)."""

    with session_scope(database_url=database_url) as session:
        return IntegrityManager(LedgerStore(session)).warnings()


def clear_transactions(*, database_url: str | None = None) -> int:
    """Delete every transaction and the import history; keep categories and rules."""

    with category_write_scope(database_url=database_url) as session:
        removed = LedgerStore(session).clear_transactions_only()
    logger.info("cleared %d transactions and the import history", removed)
    return removed


def clear_all(*, database_url: str | None = None) -> int:
    """Delete transactions, rules, categories and the import history.

    Settings are kept. The reserved income/internal categories are recreated
    so the ledger stays importable.
    """

    with category_write_scope(database_url=database_url) as session:
        store = LedgerStore(session)
        removed = store.clear_all()
        ensure_system_categories(store)
    logger.info("cleared all ledger data (%d transactions)", removed)
    return removed


__all__ = [
    "ImportSummary",
    "add_category",
    "add_ignored_account",
    "add_rule",
    "check_integrity",
    "clear_all",
    "clear_transactions",
    "delete_category",
    "delete_rule",
    "export_rules_json",
    "get_config",
    "get_ignored_accounts",
    "get_transaction",
    "import_history",
    "import_rules_json",
    "import_statement",
    "integrity_warnings",
    "list_categories",
    "list_rules",
    "list_unresolved",
    "reapply_rules",
    "remove_ignored_account",
    "resolve_transaction",
    "suggest",
    "update_category",
]
