import pytest

from moneytracker.schemas import StatementEntry, Transaction
from moneytracker.statement_matcher import match_statement, normalize_date_key, within_two_days


@pytest.mark.parametrize("raw,expected", [
    ("2024-01-10", "2024-01-10"),
    ("09/01/2024", "2024-01-09"),
    ("9-1-24", "2024-01-09"),
    ("12 Jan 2024", "2024-01-12"),
    ("12-Sept-2024", "2024-09-12"),
    ("Value date 03 March 2024", "2024-03-03"),
    ("31/02/2024", ""),
    ("", ""),
    (None, ""),
    ("yesterday", ""),
])
def test_normalize_date_key(raw, expected):
    assert normalize_date_key(raw) == expected


def test_within_two_days():
    assert within_two_days("2024-01-10", "2024-01-08")
    assert within_two_days("2024-01-10", "2024-01-12")
    assert not within_two_days("2024-01-10", "2024-01-13")
    assert not within_two_days("", "2024-01-10")


def _return(txn_id="r1", amount=500, date="2024-01-10", **kw):
    return Transaction(id=txn_id, type="return", amount=amount, date=date, **kw)


def test_match_within_window_only():
    txns = [_return()]
    entries = [
        StatementEntry(date="2024-01-14", amount=500, desc="too late", ref="LATE000001"),
        StatementEntry(date="09/01/2024", amount=500, desc="UPI from Asha", ref="UTR123456789", mode="UPI"),
    ]
    assert match_statement(entries, txns) == 1
    assert txns[0].ref == "UTR123456789"
    assert txns[0].mode == "UPI"
    assert txns[0].source == "UPI from Asha"


def test_matching_twice_changes_nothing():
    txns = [_return()]
    entries = [StatementEntry(date="2024-01-10", amount=500, desc="NEFT credit", ref="ABCD12345678", mode="NEFT")]
    assert match_statement(entries, txns) == 1
    before = txns[0].model_dump()
    assert match_statement(entries, txns) == 0
    assert txns[0].model_dump() == before


def test_existing_fields_are_kept():
    txns = [_return(ref="MINE", mode="IMPS", source="cash deposit")]
    entries = [StatementEntry(date="2024-01-10", amount=500, desc="other", ref="THEIRS123", mode="UPI")]
    assert match_statement(entries, txns) == 0
    assert txns[0].ref == "MINE"
    assert txns[0].mode == "IMPS"
    assert txns[0].source == "cash deposit"


def test_outgoing_and_undated_are_not_matched():
    txns = [
        Transaction(id="o1", type="outgoing", employee_id="e1", amount=500, date="2024-01-10"),
        _return("r2", date=""),
    ]
    entries = [StatementEntry(date="2024-01-10", amount=500, desc="x", ref="REF12345678")]
    assert match_statement(entries, txns) == 0
    assert txns[0].ref is None
    assert txns[1].ref is None


def test_amount_must_match_to_the_paisa():
    txns = [_return(amount=500.5)]
    entries = [StatementEntry(date="2024-01-10", amount=500.0, desc="x", ref="REF12345678")]
    assert match_statement(entries, txns) == 0


def test_source_is_truncated():
    txns = [_return()]
    entries = [StatementEntry(date="2024-01-10", amount=500, desc="d" * 300)]
    match_statement(entries, txns)
    assert len(txns[0].source) == 140


def test_entries_are_not_consumed():
    txns = [_return("r1"), _return("r2", date="2024-01-11")]
    entries = [StatementEntry(date="2024-01-10", amount=500, desc="one credit", ref="SAME12345678")]
    assert match_statement(entries, txns) == 2
    assert txns[0].ref == txns[1].ref == "SAME12345678"
