from decimal import Decimal

from expense_tracker.models import INCOME_CATEGORY_ID, INTERNAL_CATEGORY_ID, Mapping, Transaction, TxType
from expense_tracker.recompute import reapply

RULES = [
    Mapping(id="m1", pattern="NETFLIX", category_id="entertainment"),
    Mapping(id="m2", pattern="FLIX", category_id="subscriptions"),
    Mapping(id="m3", pattern="RIMI", category_id="groceries"),
]


def _tx(tx_id: str, beneficiary: str, *, credit: bool = False, **kw) -> Transaction:
    return Transaction(
        id=tx_id,
        date="2024-02-01",
        amount=Decimal("1.00"),
        type=TxType.CREDIT if credit else TxType.DEBIT,
        beneficiary=beneficiary,
        purpose="",
        **kw,
    )


def test_reapply_overwrites_manual_choices():
    txs = [_tx("T1", "RIMI LATVIA", category_id="dining")]
    result = reapply(txs, RULES)
    assert result.transactions[0].category_id == "groceries"
    assert result.change_count == 1
    assert result.changed_ids == ("T1",)


def test_reapply_covers_every_outcome():
    txs = [
        _tx("single", "RIMI", category_id="old"),
        _tx("conflict", "NETFLIX.COM", category_id="entertainment"),
        _tx("credit", "ACME SIA", credit=True),
        _tx("debit", "Corner Kiosk", category_id="old"),
        _tx("internal", "Jane Roe (LV11HABA)", category_id="groceries"),
    ]
    result = reapply(txs, RULES, ["lv11"])
    by_id = {t.id: t for t in result.transactions}

    assert by_id["single"].category_id == "groceries"
    assert by_id["conflict"].category_id is None
    assert by_id["conflict"].conflicts == {"entertainment", "subscriptions"}
    assert by_id["credit"].category_id == INCOME_CATEGORY_ID
    assert by_id["debit"].category_id is None and by_id["debit"].conflicts is None
    assert by_id["internal"].category_id == INTERNAL_CATEGORY_ID
    assert result.change_count == 5
    assert [t.id for t in result.transactions] == [t.id for t in txs]


def test_unchanged_transactions_are_not_counted():
    txs = [
        _tx("a", "RIMI", category_id="groceries"),
        _tx("b", "NETFLIX", conflicts=frozenset({"subscriptions", "entertainment"})),
        _tx("c", "Corner Kiosk"),
    ]
    result = reapply(txs, RULES)
    assert result.change_count == 0
    assert result.changed == []


def test_reapply_result_lists_changed_transactions():
    txs = [_tx("a", "RIMI", category_id="groceries"), _tx("b", "RIMI")]
    result = reapply(txs, RULES)
    assert [t.id for t in result.changed] == ["b"]
