"""Cut and expected-return model.

Everything here is recomputed from the transaction list on every read; there
is no stored running total to drift out of sync.
"""

from __future__ import annotations

from typing import Dict

from .schemas import (
    Employee,
    EmployeeSummary,
    Ledger,
    OutgoingBreakdown,
    OverallTotals,
    Transaction,
)


def compute_cut(txn: Transaction, employee: Employee) -> float:
    if txn.cut_override is not None:
        return float(txn.cut_override)
    if employee.cut_type == "percent":
        return txn.amount * (employee.cut_value / 100)
    return float(employee.cut_value)


def expected_return(amount: float, cut: float) -> float:
    return max(0.0, amount - cut)


def compute_summary(ledger: Ledger) -> Dict[str, EmployeeSummary]:
    per: Dict[str, EmployeeSummary] = {
        emp.id: EmployeeSummary(
            employee_id=emp.id,
            name=emp.name,
            cut_type=emp.cut_type,
            cut_value=emp.cut_value,
        )
        for emp in ledger.employees
    }
    employees = {emp.id: emp for emp in ledger.employees}

    for txn in ledger.transactions:
        if txn.type != "outgoing":
            continue
        summary = per.get(txn.employee_id)
        if summary is None:
            # orphaned outgoing (deleted or never-set employee)
            continue
        cut = compute_cut(txn, employees[txn.employee_id])
        expected = expected_return(txn.amount, cut)
        summary.outgoings.append(
            OutgoingBreakdown(transaction=txn, computed_cut=cut, expected_return=expected)
        )
        summary.total_sent += txn.amount
        summary.total_cut += cut
        summary.total_expected += expected
    return per


def compute_overall_totals(ledger: Ledger) -> OverallTotals:
    per = compute_summary(ledger)
    total_sent = sum(s.total_sent for s in per.values())
    total_expected = sum(s.total_expected for s in per.values())
    total_returned = sum(t.amount or 0 for t in ledger.transactions if t.type == "return")
    return OverallTotals(
        total_sent=total_sent,
        total_expected=total_expected,
        total_returned=total_returned,
        overall_balance=total_expected - total_returned,
    )
