import random

import pytest

from moneytracker.cuts import compute_cut, compute_overall_totals, compute_summary, expected_return
from moneytracker.schemas import Employee, Ledger, Transaction


def _out(txn_id, emp_id, amount, **kw):
    return Transaction(id=txn_id, type="outgoing", employee_id=emp_id, amount=amount, **kw)


def _ret(txn_id, amount, **kw):
    return Transaction(id=txn_id, type="return", amount=amount, **kw)


def test_percent_cut():
    emp = Employee(id="e1", name="Ravi", cut_type="percent", cut_value=10)
    txn = _out("t1", "e1", 1000)
    cut = compute_cut(txn, emp)
    assert cut == pytest.approx(100)
    assert expected_return(txn.amount, cut) == pytest.approx(900)


def test_flat_cut():
    emp = Employee(id="e1", name="Ravi", cut_type="flat", cut_value=50)
    assert compute_cut(_out("t1", "e1", 1000), emp) == 50


def test_override_wins_and_expected_never_negative():
    emp = Employee(id="e1", name="Ravi", cut_type="percent", cut_value=10)
    txn = _out("t1", "e1", 500, cut_override=1000)
    cut = compute_cut(txn, emp)
    assert cut == 1000
    assert expected_return(txn.amount, cut) == 0


def test_zero_override_is_respected():
    emp = Employee(id="e1", name="Ravi", cut_type="flat", cut_value=50)
    assert compute_cut(_out("t1", "e1", 200, cut_override=0), emp) == 0


def test_overall_balance():
    ledger = Ledger(
        employees=[
            Employee(id="e1", name="Ravi", cut_type="percent", cut_value=10),
            Employee(id="e2", name="Asha", cut_type="flat", cut_value=300),
        ],
        transactions=[
            _out("t1", "e1", 1000),
            _out("t2", "e2", 1000),
            _ret("t3", 500),
        ],
    )
    totals = compute_overall_totals(ledger)
    assert totals.total_sent == pytest.approx(2000)
    assert totals.total_expected == pytest.approx(1600)
    assert totals.total_returned == pytest.approx(500)
    assert totals.overall_balance == pytest.approx(1100)


def test_summary_skips_orphaned_outgoing_and_returns():
    ledger = Ledger(
        employees=[Employee(id="e1", name="Ravi", cut_type="percent", cut_value=10)],
        transactions=[
            _out("t1", "e1", 1000),
            _out("t2", "gone", 400),
            _ret("t3", 100),
        ],
    )
    per = compute_summary(ledger)
    assert list(per) == ["e1"]
    s = per["e1"]
    assert [o.transaction.id for o in s.outgoings] == ["t1"]
    assert s.total_sent == 1000
    assert s.total_cut == pytest.approx(100)
    assert s.total_expected == pytest.approx(900)
    assert compute_overall_totals(ledger).total_sent == 1000


def test_employee_without_outgoings_has_zero_totals():
    ledger = Ledger(employees=[Employee(id="e1", name="Ravi")])
    s = compute_summary(ledger)["e1"]
    assert s.outgoings == []
    assert s.total_expected == 0


def test_totals_do_not_depend_on_transaction_order():
    employees = [
        Employee(id="e1", name="Ravi", cut_type="percent", cut_value=10),
        Employee(id="e2", name="Asha", cut_type="flat", cut_value=300),
    ]
    transactions = [
        _out("t1", "e1", 1000),
        _out("t2", "e2", 1000),
        _out("t3", "e1", 250.5, cut_override=20),
        _ret("t4", 500),
        _out("t5", "e2", 80),
        _ret("t6", 125.25),
    ]
    ledger = Ledger(employees=employees, transactions=transactions)
    before = ledger.model_dump()
    per = compute_summary(ledger)
    totals = compute_overall_totals(ledger)
    assert ledger.model_dump() == before

    shuffled = list(transactions)
    random.Random(7).shuffle(shuffled)
    for order in (list(reversed(transactions)), shuffled):
        other = Ledger(employees=employees, transactions=order)
        other_per = compute_summary(other)
        assert set(other_per) == set(per)
        for emp_id, s in per.items():
            o = other_per[emp_id]
            assert o.total_sent == pytest.approx(s.total_sent)
            assert o.total_cut == pytest.approx(s.total_cut)
            assert o.total_expected == pytest.approx(s.total_expected)
            assert sorted(b.transaction.id for b in o.outgoings) == sorted(b.transaction.id for b in s.outgoings)
        other_totals = compute_overall_totals(other)
        assert other_totals.total_sent == pytest.approx(totals.total_sent)
        assert other_totals.total_expected == pytest.approx(totals.total_expected)
        assert other_totals.total_returned == pytest.approx(totals.total_returned)
        assert other_totals.overall_balance == pytest.approx(totals.overall_balance)
