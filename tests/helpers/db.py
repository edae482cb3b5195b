"""DB helpers for tests: bootstrap a temporary SQLite ledger and seed it."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from db import Base
from db.client import get_engine, reset_engine, session_scope
from sqlalchemy import text as sql_text

from expense_tracker.models import Category, Mapping, Transaction
from expense_tracker.persistence import LedgerStore


def bootstrap_sqlite_db(db_file: Path, *, seed_system: bool = True) -> str:
    """Create a SQLite database file, initialize the schema, and return the URL.

    A file-backed DB lets several SQLAlchemy connections share the same state
    (in-memory DBs are per-connection by default). Any engine bound to a
    previous test's URL is disposed first.
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    reset_engine()
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    _assert_foreign_keys_enforced(url)
    if seed_system:
        with session_scope(database_url=url) as session:
            LedgerStore(session).ensure_system_categories()
    return url


def seed_ledger(
    *,
    database_url: str,
    categories: Iterable[Category] = (),
    mappings: Iterable[Mapping] = (),
    transactions: Iterable[Transaction] = (),
    ignored_accounts: Iterable[str] | None = None,
) -> None:
    """Insert records in FK-safe order (categories, then rules and transactions)."""

    with session_scope(database_url=database_url) as session:
        store = LedgerStore(session)
        for c in categories:
            store.add_category(c)
        for m in mappings:
            store.add_mapping(m)
        store.save_transactions(transactions)
        if ignored_accounts is not None:
            store.set_ignored_accounts(ignored_accounts)


def _assert_foreign_keys_enforced(database_url: str) -> None:
    with session_scope(database_url=database_url) as session:
        enabled = session.execute(sql_text("PRAGMA foreign_keys")).scalar_one()
    assert enabled == 1, "SQLite foreign key enforcement is off"
