"""Bank statement CSV → canonical :class:`~expense_tracker.models.Transaction`.

Input is the delimited export with this header (case-sensitive)::

    Account number, Payment No., Value date, Beneficiary/payer's account number,
    Beneficiary/ Payer, Debit/Credit, Amount, Transaction No.,
    Purpose of payment, Currency, Registration number/Personal ID

Parsing follows RFC 4180 via the stdlib :mod:`csv` module. Rows are
independent and processing never aborts on a single bad row:

- a row without ``Value date`` or ``Amount`` is dropped silently (blank and
  footer lines look like this);
- a row whose date is not ``dd.mm.yyyy``, whose amount is not a plain decimal
  number, or whose ``Debit/Credit`` flag is not ``D``/``C`` becomes a
  :class:`~expense_tracker.models.RowError` and is excluded;
- everything else becomes a transaction, in input order.

Amounts are read with :class:`~decimal.Decimal` using a dot as the decimal
separator. Comma decimals and thousands separators are not supported and are
reported as row errors rather than guessed at.
"""

from __future__ import annotations

import csv
import hashlib
import json
from collections import Counter
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from io import StringIO
from os import PathLike
from pathlib import Path

from .logging_setup import get_logger
from .models import ParseResult, RowError, Transaction, TxType
from .pmap import p_map, p_map_skip

logger = get_logger("expense_tracker.normalizers")

COL_ACCOUNT = "Account number"
COL_PAYMENT_NO = "Payment No."
COL_VALUE_DATE = "Value date"
COL_BENEFICIARY_ACCOUNT = "Beneficiary/payer's account number"
COL_BENEFICIARY = "Beneficiary/ Payer"
COL_DEBIT_CREDIT = "Debit/Credit"
COL_AMOUNT = "Amount"
COL_TRANSACTION_NO = "Transaction No."
COL_PURPOSE = "Purpose of payment"
COL_CURRENCY = "Currency"
COL_PERSONAL_ID = "Registration number/Personal ID"

EXPECTED_HEADER: tuple[str, ...] = (
    COL_ACCOUNT,
    COL_PAYMENT_NO,
    COL_VALUE_DATE,
    COL_BENEFICIARY_ACCOUNT,
    COL_BENEFICIARY,
    COL_DEBIT_CREDIT,
    COL_AMOUNT,
    COL_TRANSACTION_NO,
    COL_PURPOSE,
    COL_CURRENCY,
    COL_PERSONAL_ID,
)

REQUIRED_COLUMNS: frozenset[str] = frozenset({COL_VALUE_DATE, COL_AMOUNT})

SOURCE_DATE_FORMAT = "%d.%m.%Y"
GENERATED_ID_PREFIX = "gen-"


class StatementFormatError(csv.Error):
    """The input as a whole is not a statement export (no header/required columns)."""


class _RowParseError(ValueError):
    pass


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _cell(row: Mapping[str, str], key: str) -> str:
    return (row.get(key) or "").strip()


def dmy_to_iso(date_str: str) -> str:
    """Convert ``dd.mm.yyyy`` to ``YYYY-MM-DD``; raise ``ValueError`` otherwise."""

    try:
        dt = datetime.strptime(date_str.strip(), SOURCE_DATE_FORMAT)
    except ValueError as exc:
        raise _RowParseError(f"Invalid date format: {date_str!r}") from exc
    return dt.date().isoformat()


def parse_amount(raw: str) -> Decimal:
    """Parse a plain decimal amount and return its magnitude."""

    s = raw.strip()
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise _RowParseError(f"Invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise _RowParseError(f"Invalid amount: {raw!r}")
    return abs(d)


def _parse_type(raw: str) -> TxType:
    try:
        return TxType(raw.strip().upper())
    except ValueError as exc:
        raise _RowParseError(f"Invalid Debit/Credit flag: {raw!r}") from exc


def compose_beneficiary(name: str, account: str) -> str:
    """Append the counterparty account in parentheses so rules can match on it."""

    if account:
        return f"{name} ({account})".strip()
    return name


def content_id(row: Mapping[str, str]) -> str:
    """Deterministic id for rows without a ``Transaction No.``.

    Hashes the fields that identify a booking so that re-importing the same
    export yields the same ids. Identical rows inside one file are told apart
    later by an occurrence suffix (see :func:`_disambiguate_generated_ids`).
    """

    payload = {
        "account": _cell(row, COL_ACCOUNT),
        "payment_no": _cell(row, COL_PAYMENT_NO),
        "date": _cell(row, COL_VALUE_DATE),
        "amount": _cell(row, COL_AMOUNT),
        "type": _cell(row, COL_DEBIT_CREDIT).upper(),
        "beneficiary": _cell(row, COL_BENEFICIARY),
        "beneficiary_account": _cell(row, COL_BENEFICIARY_ACCOUNT),
        "purpose": _cell(row, COL_PURPOSE),
    }
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return GENERATED_ID_PREFIX + hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Row and file processing
# ---------------------------------------------------------------------------


def _read_rows(csv_text: str) -> list[dict[str, str]]:
    # utf-8-sig exports leave a BOM glued to the first header name.
    text = csv_text.lstrip("\ufeff")
    with StringIO(text) as f:
        reader = csv.DictReader(f)
        headers = reader.fieldnames
        if not headers:
            raise StatementFormatError("statement has no header row")
        missing = sorted(c for c in REQUIRED_COLUMNS if c not in headers)
        if missing:
            raise StatementFormatError(
                "statement header mismatch. Missing columns: " + ", ".join(missing)
            )
        rows: list[dict[str, str]] = []
        for row in reader:
            # Extra cells land under a None key; drop them to keep dict[str, str].
            rows.append({k: (v if v is not None else "") for k, v in row.items() if k is not None})
        return rows


def normalize_row(index: int, row: Mapping[str, str]) -> Transaction | RowError | object:
    """Normalize one data row.

    Returns a :class:`Transaction`, a :class:`RowError`, or ``p_map_skip`` for
    rows missing the date or amount.
    """

    date_raw = _cell(row, COL_VALUE_DATE)
    amount_raw = _cell(row, COL_AMOUNT)
    if not date_raw or not amount_raw:
        return p_map_skip

    try:
        iso_date = dmy_to_iso(date_raw)
        amount = parse_amount(amount_raw)
        tx_type = _parse_type(_cell(row, COL_DEBIT_CREDIT))
    except _RowParseError as exc:
        return RowError(index=index, row=dict(row), message=str(exc))

    tx_id = _cell(row, COL_TRANSACTION_NO) or content_id(row)
    return Transaction(
        id=tx_id,
        date=iso_date,
        amount=amount,
        type=tx_type,
        beneficiary=compose_beneficiary(
            _cell(row, COL_BENEFICIARY), _cell(row, COL_BENEFICIARY_ACCOUNT)
        ),
        purpose=_cell(row, COL_PURPOSE),
        original_row=dict(row),
    )


def has_generated_id(tx: Transaction) -> bool:
    """True when the row carried no ``Transaction No.`` and the id was hashed."""

    return not _cell(tx.original_row, COL_TRANSACTION_NO)


def _disambiguate_generated_ids(transactions: list[Transaction]) -> list[Transaction]:
    # Bank-issued ids are kept verbatim, even ones that happen to start with "gen-".
    seen: Counter[str] = Counter()
    out: list[Transaction] = []
    for tx in transactions:
        if not has_generated_id(tx):
            out.append(tx)
            continue
        seen[tx.id] += 1
        n = seen[tx.id]
        out.append(tx if n == 1 else replace(tx, id=f"{tx.id}-{n}"))
    return out


def parse_bank_csv(csv_text: str, *, workers: int = 1) -> ParseResult:
    """Parse a statement export into transactions plus per-row errors.

    ``workers`` > 1 normalizes rows on a thread pool; output order still
    matches input order.

    Raises
    ------
    StatementFormatError
        When the text has no header row or lacks ``Value date``/``Amount``.
    """

    rows = _read_rows(csv_text)
    results = p_map(
        list(enumerate(rows)),
        lambda item: normalize_row(*item),
        concurrency=max(1, min(workers, len(rows) or 1)),
    )

    transactions: list[Transaction] = []
    errors: list[RowError] = []
    for res in results:
        if isinstance(res, RowError):
            logger.warning("row %d skipped: %s", res.index, res.message)
            errors.append(res)
        else:
            transactions.append(res)  # type: ignore[arg-type]

    transactions = _disambiguate_generated_ids(transactions)
    logger.debug("parsed %d transactions (%d row errors)", len(transactions), len(errors))
    return ParseResult(transactions=transactions, errors=errors)


def load_statement(path: str | PathLike[str], *, workers: int = 1) -> ParseResult:
    """Read a statement file (UTF-8, BOM tolerated) and parse it."""

    p = Path(path)
    with p.open(encoding="utf-8-sig", newline="") as f:
        return parse_bank_csv(f.read(), workers=workers)


__all__ = [
    "EXPECTED_HEADER",
    "REQUIRED_COLUMNS",
    "StatementFormatError",
    "compose_beneficiary",
    "content_id",
    "has_generated_id",
    "dmy_to_iso",
    "load_statement",
    "normalize_row",
    "parse_amount",
    "parse_bank_csv",
]
