"""Command layer over one workspace's ledger.

The service owns the ledger value. Every mutation goes through a command that
validates its input, changes the ledger in place and returns a
``LedgerChange``; a rejected command raises ``LedgerCommandError`` and leaves
the ledger as it was. Saving is explicit and last-write-wins.
"""

from __future__ import annotations

import asyncio
import os
import time
import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .csv_io import (
    EmployeeImportRow,
    IncomingImportRow,
    OutgoingImportRow,
    employees_to_csv,
    incoming_to_csv,
    ledger_from_json,
    ledger_to_json,
    outgoing_to_csv,
    read_csv_rows,
)
from .cuts import compute_overall_totals, compute_summary
from .schemas import (
    CandidateConfirm,
    Employee,
    EmployeeSummary,
    EmployeeUpdate,
    Ledger,
    LedgerChange,
    OverallTotals,
    StatementEntry,
    Transaction,
    TransactionCreate,
    TransactionUpdate,
)
from .statement_matcher import match_statement
from .validation import TransactionValidator

DEFAULT_CUT_TYPE = "percent"
DEFAULT_CUT_VALUE = float(os.getenv("DEFAULT_CUT_VALUE", "10"))


class LedgerCommandError(ValueError):
    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class NotFoundError(LookupError):
    pass


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def now_ms() -> int:
    return int(time.time() * 1000)


class LedgerService:
    def __init__(self, store=None, workspace: Optional[str] = None, ledger: Optional[Ledger] = None,
                 validator: Optional[TransactionValidator] = None) -> None:
        self.store = store
        self.workspace = workspace
        self.ledger = ledger if ledger is not None else Ledger()
        self.validator = validator or TransactionValidator()
        self.warnings: List[str] = []
        self._load_token = 0
        self._load_failed = False

    def _warn(self, msg: str) -> None:
        print(f"⚠️ {msg}")
        self.warnings.append(msg)

    # --- Persistence ----------------------------------------------------------------------
    def load(self) -> Ledger:
        print(f"📂 LOAD workspace={self.workspace}")
        try:
            ledger = self.store.load(self.workspace)
            if ledger is None:
                self.ledger = Ledger()
                self.store.save(self.workspace, self.ledger)
            else:
                self.ledger = ledger
            self._load_failed = False
        except (SQLAlchemyError, ValueError) as e:
            print(f"❌ LOAD ERROR: {e}")
            self._warn("Load failed. Using local in-memory state.")
            self._load_failed = True
        return self.ledger

    def save(self) -> bool:
        if not self.workspace:
            self._warn("Pick a workspace first.")
            return False
        if self._load_failed:
            self._warn("Workspace did not load; changes kept in memory and not saved.")
            return False
        try:
            self.store.save(self.workspace, self.ledger)
        except SQLAlchemyError as e:
            print(f"❌ SAVE ERROR: {e}")
            self._warn("Save failed (kept in memory).")
            return False
        print(f"💾 SAVED workspace={self.workspace}: "
              f"{len(self.ledger.employees)} employees, {len(self.ledger.transactions)} transactions")
        return True

    async def switch_workspace(self, code: str) -> bool:
        """Load another workspace; a load superseded by a later switch is dropped."""
        code = (code or "").strip()
        if not code:
            self._warn("Workspace code is required.")
            return False
        self._load_token += 1
        my_token = self._load_token
        self.workspace = code
        try:
            ledger = await asyncio.to_thread(self.store.load, code)
        except (SQLAlchemyError, ValueError) as e:
            if my_token == self._load_token:
                print(f"❌ LOAD ERROR: {e}")
                self._warn("Load failed. Using local in-memory state.")
                self._load_failed = True
            return False
        if my_token != self._load_token:
            print(f"⏭ Dropping stale load for workspace={code}")
            return False
        self._load_failed = False
        if ledger is None:
            self.ledger = Ledger()
            self.save()
        else:
            self.ledger = ledger
        return True

    # --- Lookups --------------------------------------------------------------------------
    def get_employee(self, employee_id: str) -> Employee:
        for emp in self.ledger.employees:
            if emp.id == employee_id:
                return emp
        raise NotFoundError(f"Employee {employee_id} not found")

    def get_transaction(self, txn_id: str) -> Transaction:
        for txn in self.ledger.transactions:
            if txn.id == txn_id:
                return txn
        raise NotFoundError(f"Transaction {txn_id} not found")

    def employee_name(self, employee_id: str) -> str:
        try:
            return self.get_employee(employee_id).name
        except NotFoundError:
            return ""

    # --- Employees ------------------------------------------------------------------------
    def add_employee(self, name: str = "", cut_type: Optional[str] = None,
                     cut_value: Optional[float] = None) -> LedgerChange:
        cut_type = cut_type or DEFAULT_CUT_TYPE
        cut_value = DEFAULT_CUT_VALUE if cut_value is None else cut_value
        result = self.validator.validate_employee(cut_type, cut_value)
        if not result['is_valid']:
            raise LedgerCommandError(result['errors'])
        emp = Employee(id=new_id(), name=(name or "").strip(), cut_type=cut_type, cut_value=cut_value)
        self.ledger.employees.append(emp)
        return LedgerChange(action="add_employee", ids=[emp.id], count=1, warnings=result['warnings'])

    def update_employee(self, employee_id: str, patch: EmployeeUpdate) -> LedgerChange:
        emp = self.get_employee(employee_id)
        changes = patch.model_dump(exclude_unset=True)
        cut_type = changes.get("cut_type", emp.cut_type)
        cut_value = changes.get("cut_value", emp.cut_value)
        result = self.validator.validate_employee(cut_type, cut_value)
        if not result['is_valid']:
            raise LedgerCommandError(result['errors'])
        if "name" in changes and changes["name"] is not None:
            emp.name = changes["name"].strip()
        emp.cut_type = cut_type
        emp.cut_value = cut_value
        return LedgerChange(action="update_employee", ids=[emp.id], count=1, warnings=result['warnings'])

    def delete_employee(self, employee_id: str) -> LedgerChange:
        emp = self.get_employee(employee_id)
        self.ledger.employees = [e for e in self.ledger.employees if e.id != emp.id]
        orphaned = sum(1 for t in self.ledger.transactions
                       if t.type == "outgoing" and t.employee_id == emp.id)
        warnings = [f"{orphaned} outgoing transaction(s) now have no employee"] if orphaned else []
        return LedgerChange(action="delete_employee", ids=[emp.id], count=1, warnings=warnings)

    def resolve_or_create_employee(self, name: Optional[str]) -> str:
        """Id of the employee called ``name`` (case-insensitive), creating it if needed."""
        n = (name or "").strip()
        if not n:
            return ""
        for emp in self.ledger.employees:
            if emp.name.strip().lower() == n.lower():
                return emp.id
        emp = Employee(id=new_id(), name=n, cut_type=DEFAULT_CUT_TYPE, cut_value=DEFAULT_CUT_VALUE)
        self.ledger.employees.append(emp)
        print(f"👤 Created employee {n!r} ({emp.id})")
        return emp.id

    # --- Transactions ---------------------------------------------------------------------
    def _check(self, txn_type: str, amount: Optional[float], employee_id: str,
               cut_override: Optional[float] = None) -> Dict:
        result = self.validator.validate_transaction(txn_type, amount, employee_id, self.ledger.employees,
                                                     cut_override)
        if not result['is_valid']:
            raise LedgerCommandError(result['errors'])
        return result

    def add_transaction(self, data: TransactionCreate) -> LedgerChange:
        result = self._check(data.type, data.amount, data.employee_id, data.cut_override)
        fields = data.model_dump()
        if data.type == "return":
            fields["employee_id"] = ""
        fields["mode"] = fields["mode"] or None
        fields["ref"] = fields["ref"] or None
        txn = Transaction(id=new_id(), created_at=now_ms(), **fields)
        self.ledger.transactions.append(txn)
        return LedgerChange(action="add_transaction", ids=[txn.id], count=1, warnings=result['warnings'])

    def update_transaction(self, txn_id: str, patch: TransactionUpdate) -> LedgerChange:
        txn = self.get_transaction(txn_id)
        merged = txn.model_dump()
        merged.update(patch.model_dump(exclude_unset=True))
        for key in ("employee_id", "date", "time", "source", "note", "image_url"):
            merged[key] = merged[key] or ""
        result = self._check(merged["type"], merged["amount"], merged["employee_id"], merged["cut_override"])
        if merged["type"] == "return":
            merged["employee_id"] = ""
        updated = Transaction.model_validate(merged)
        for field in Transaction.model_fields:
            setattr(txn, field, getattr(updated, field))
        return LedgerChange(action="update_transaction", ids=[txn.id], count=1, warnings=result['warnings'])

    def delete_transaction(self, txn_id: str) -> LedgerChange:
        txn = self.get_transaction(txn_id)
        self.ledger.transactions = [t for t in self.ledger.transactions if t.id != txn.id]
        return LedgerChange(action="delete_transaction", ids=[txn.id], count=1)

    def confirm_candidate(self, confirm: CandidateConfirm) -> LedgerChange:
        """Turn a reviewed OCR candidate into a transaction."""
        cand = confirm.candidate
        amount_check = self.validator.validate_amount(cand.amount)
        if not amount_check['is_valid']:
            raise LedgerCommandError(amount_check['errors'])
        txn_type = confirm.type or ("return" if cand.direction == "return" else "outgoing")
        employee_id = ""
        if txn_type == "outgoing":
            employee_id = (
                confirm.employee_id
                or self.resolve_or_create_employee(confirm.employee_name)
                or cand.employee_id
            )
        return self.add_transaction(TransactionCreate(
            type=txn_type,
            employee_id=employee_id,
            amount=cand.amount,
            date=cand.date or "",
            time=cand.time or "",
            mode=cand.mode,
            ref=cand.ref,
            source=confirm.source if txn_type == "return" else "",
            note=confirm.note,
            image_url=confirm.image_url,
        ))

    def clear_outgoing(self) -> LedgerChange:
        return self._clear("clear_outgoing", lambda t: t.type != "outgoing")

    def clear_incoming(self) -> LedgerChange:
        return self._clear("clear_incoming", lambda t: t.type != "return")

    def clear_all(self) -> LedgerChange:
        count = len(self.ledger.transactions) + len(self.ledger.employees)
        self.ledger = Ledger()
        return LedgerChange(action="clear_all", count=count)

    def _clear(self, action: str, keep) -> LedgerChange:
        before = len(self.ledger.transactions)
        self.ledger.transactions = [t for t in self.ledger.transactions if keep(t)]
        return LedgerChange(action=action, count=before - len(self.ledger.transactions))

    # --- Imports --------------------------------------------------------------------------
    def import_employees_csv(self, text: str) -> LedgerChange:
        rows = read_csv_rows(text)
        ids: List[str] = []
        warnings: List[str] = []
        for n, raw in enumerate(rows, start=2):
            row = EmployeeImportRow.from_row(raw)
            if not row.name:
                warnings.append(f"Row {n}: employee name missing; skipped")
                continue
            cut_value = DEFAULT_CUT_VALUE if row.cut_value is None else row.cut_value
            check = self.validator.validate_employee(row.cut_type, cut_value)
            if not check['is_valid']:
                warnings.append(f"Row {n}: {'; '.join(check['errors'])}; skipped")
                continue
            emp = self.get_employee(self.resolve_or_create_employee(row.name))
            emp.cut_type = row.cut_type
            emp.cut_value = cut_value
            ids.append(emp.id)
        print(f"📥 Imported {len(ids)} employee rows ({len(warnings)} skipped)")
        return LedgerChange(action="import_employees", ids=ids, count=len(ids), warnings=warnings)

    def import_outgoing_csv(self, text: str) -> LedgerChange:
        rows = read_csv_rows(text)
        ids: List[str] = []
        warnings: List[str] = []
        created = now_ms()
        for n, raw in enumerate(rows, start=2):
            row = OutgoingImportRow.from_row(raw)
            check = self.validator.validate_amount(row.amount)
            if not check['is_valid']:
                reason = "amount missing/invalid" if row.amount is None else '; '.join(check['errors'])
                warnings.append(f"Row {n}: {reason}; skipped")
                continue
            if not row.employee:
                warnings.append(f"Row {n}: employee missing; skipped")
                continue
            if row.cut is not None and row.cut < 0:
                warnings.append(f"Row {n}: cut cannot be negative: {row.cut}; skipped")
                continue
            txn = Transaction(
                id=new_id(),
                type="outgoing",
                employee_id=self.resolve_or_create_employee(row.employee),
                amount=row.amount,
                date=row.date,
                time=row.time,
                mode=row.mode or None,
                ref=row.ref or None,
                note=row.note,
                cut_override=row.cut,
                created_at=created,
                image_url=row.image_url,
            )
            self.ledger.transactions.append(txn)
            ids.append(txn.id)
        print(f"📥 Imported {len(ids)} outgoing rows ({len(warnings)} skipped)")
        return LedgerChange(action="import_outgoing", ids=ids, count=len(ids), warnings=warnings)

    def import_incoming_csv(self, text: str) -> LedgerChange:
        rows = read_csv_rows(text)
        ids: List[str] = []
        warnings: List[str] = []
        created = now_ms()
        for n, raw in enumerate(rows, start=2):
            row = IncomingImportRow.from_row(raw)
            check = self.validator.validate_amount(row.amount)
            if not check['is_valid']:
                reason = "amount missing/invalid" if row.amount is None else '; '.join(check['errors'])
                warnings.append(f"Row {n}: {reason}; skipped")
                continue
            txn = Transaction(
                id=new_id(),
                type="return",
                amount=row.amount,
                date=row.date,
                time=row.time,
                mode=row.mode or None,
                ref=row.ref or None,
                source=row.source,
                note=row.note,
                created_at=created,
                image_url=row.image_url,
            )
            self.ledger.transactions.append(txn)
            ids.append(txn.id)
        print(f"📥 Imported {len(ids)} incoming rows ({len(warnings)} skipped)")
        return LedgerChange(action="import_incoming", ids=ids, count=len(ids), warnings=warnings)

    def import_json(self, text: str) -> LedgerChange:
        self.ledger = ledger_from_json(text)
        return LedgerChange(action="import_json", count=len(self.ledger.transactions))

    def apply_statement(self, entries: Iterable[StatementEntry]) -> LedgerChange:
        count = match_statement(entries, self.ledger.transactions)
        return LedgerChange(action="match_statement", count=count)

    # --- Read side ------------------------------------------------------------------------
    def summary(self) -> Dict[str, EmployeeSummary]:
        return compute_summary(self.ledger)

    def overall_totals(self) -> OverallTotals:
        return compute_overall_totals(self.ledger)

    def export_json(self) -> str:
        return ledger_to_json(self.ledger)

    def export_employees_csv(self) -> str:
        return employees_to_csv(self.ledger)

    def export_outgoing_csv(self) -> str:
        return outgoing_to_csv(self.ledger)

    def export_incoming_csv(self) -> str:
        return incoming_to_csv(self.ledger)
