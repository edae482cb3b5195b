"""Pytest configuration for test isolation.

Every test gets its own file-backed SQLite ledger: the shared engine in
``db.client`` is reset and ``DATABASE_URL`` points at a database under the
test's temporary directory. ``EXPENSE_TRACKER_*`` variables from the developer
environment are removed so configuration starts from defaults.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from db.client import reset_engine

from expense_tracker.logging_setup import configure_logging
from tests.helpers.db import bootstrap_sqlite_db

DATA_DIR = Path(__file__).resolve().parent / "data"


@pytest.fixture(scope="session", autouse=True)
def _configure_logging() -> None:
    # Bind the package handler to the real stderr once, so CLI runs under
    # CliRunner never leave it pointing at a closed capture stream.
    configure_logging("WARNING", stream=sys.__stderr__)


@pytest.fixture(autouse=True)
def database_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    for key in list(os.environ):
        if key.startswith("EXPENSE_TRACKER_"):
            monkeypatch.delenv(key, raising=False)
    url = bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")
    monkeypatch.setenv("DATABASE_URL", url)
    yield url
    reset_engine()


@pytest.fixture
def statement_csv() -> Path:
    return DATA_DIR / "statement.csv"
