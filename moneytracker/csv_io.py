"""CSV and JSON import/export for a workspace ledger.

CSV headers are matched case-insensitively with spaces, underscores and
hyphens ignored, so ``Cut Type``, ``cut_type`` and ``cutType`` are the same
column. Each import kind parses into its own row type; the ledger service
decides what to do with rows that fail validation.
"""

from __future__ import annotations

import csv
import io
import json
import re
from typing import Dict, List, Optional

import pandas as pd
from pydantic import BaseModel, ValidationError

from .schemas import CutType, Ledger, Transaction
from .statement import parse_number


class ImportFormatError(ValueError):
    """The import file is structurally unusable; nothing was imported."""


def normalize_key(header: object) -> str:
    return re.sub(r"[\s_\-]+", "", str(header or "").strip().lower())


def read_csv_rows(text: str) -> List[Dict[str, str]]:
    text = text or ""
    if text.startswith("\ufeff"):
        text = text[1:]
    if not text.strip():
        return []
    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ImportFormatError(f"Failed to parse CSV: {e}") from e
    rows: List[Dict[str, str]] = []
    for rec in df.to_dict(orient="records"):
        row = {normalize_key(k): str(v).strip() for k, v in rec.items()}
        if any(row.values()):
            rows.append(row)
    return rows


def _pick(row: Dict[str, str], *keys: str) -> str:
    for k in keys:
        v = row.get(normalize_key(k))
        if v:
            return v
    return ""


class EmployeeImportRow(BaseModel):
    name: str
    cut_type: CutType = "percent"
    cut_value: Optional[float] = None

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> "EmployeeImportRow":
        cut_type = "flat" if _pick(row, "cut_type").lower() == "flat" else "percent"
        return cls(
            name=_pick(row, "employee", "name"),
            cut_type=cut_type,
            cut_value=parse_number(_pick(row, "cut_value", "cut")),
        )


class OutgoingImportRow(BaseModel):
    date: str = ""
    time: str = ""
    employee: str = ""
    amount: Optional[float] = None
    mode: str = ""
    ref: str = ""
    note: str = ""
    cut: Optional[float] = None
    image_url: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> "OutgoingImportRow":
        return cls(
            date=_pick(row, "date"),
            time=_pick(row, "time"),
            employee=_pick(row, "employee", "name"),
            amount=parse_number(_pick(row, "amount")),
            mode=_pick(row, "mode"),
            ref=_pick(row, "ref", "reference"),
            note=_pick(row, "note"),
            cut=parse_number(_pick(row, "cut", "cut_override")),
            image_url=_pick(row, "image_url", "image"),
        )


class IncomingImportRow(BaseModel):
    date: str = ""
    time: str = ""
    amount: Optional[float] = None
    mode: str = ""
    ref: str = ""
    source: str = ""
    note: str = ""
    image_url: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, str]) -> "IncomingImportRow":
        return cls(
            date=_pick(row, "date"),
            time=_pick(row, "time"),
            amount=parse_number(_pick(row, "amount")),
            mode=_pick(row, "mode"),
            ref=_pick(row, "ref", "reference"),
            source=_pick(row, "source"),
            note=_pick(row, "note"),
            image_url=_pick(row, "image_url", "image"),
        )


# --- Export -------------------------------------------------------------------------------
EMPLOYEE_COLUMNS = ["name", "cut_type", "cut_value"]
OUTGOING_COLUMNS = ["date", "time", "employee", "amount", "mode", "ref", "note", "cut", "image_url"]
INCOMING_COLUMNS = ["date", "time", "amount", "mode", "ref", "source", "note", "image_url"]


def format_number(value: Optional[float]) -> str:
    if value is None:
        return ""
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


def to_csv(rows: List[Dict[str, str]], columns: List[str]) -> str:
    df = pd.DataFrame(rows, columns=columns)
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def employees_to_csv(ledger: Ledger) -> str:
    rows = [
        {"name": e.name, "cut_type": e.cut_type, "cut_value": format_number(e.cut_value)}
        for e in ledger.employees
    ]
    return to_csv(rows, EMPLOYEE_COLUMNS)


def outgoing_to_csv(ledger: Ledger) -> str:
    names = {e.id: e.name for e in ledger.employees}
    rows = [
        {
            "date": t.date,
            "time": t.time,
            "employee": names.get(t.employee_id, ""),
            "amount": format_number(t.amount),
            "mode": t.mode or "",
            "ref": t.ref or "",
            "note": t.note,
            "cut": format_number(t.cut_override),
            "image_url": t.image_url,
        }
        for t in _of_type(ledger, "outgoing")
    ]
    return to_csv(rows, OUTGOING_COLUMNS)


def incoming_to_csv(ledger: Ledger) -> str:
    rows = [
        {
            "date": t.date,
            "time": t.time,
            "amount": format_number(t.amount),
            "mode": t.mode or "",
            "ref": t.ref or "",
            "source": t.source,
            "note": t.note,
            "image_url": t.image_url,
        }
        for t in _of_type(ledger, "return")
    ]
    return to_csv(rows, INCOMING_COLUMNS)


def _of_type(ledger: Ledger, txn_type: str) -> List[Transaction]:
    return [t for t in ledger.transactions if t.type == txn_type]


def ledger_to_json(ledger: Ledger) -> str:
    return json.dumps(ledger.model_dump(by_alias=True), indent=2, ensure_ascii=False)


def ledger_from_json(text: str) -> Ledger:
    try:
        obj = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ImportFormatError("Failed to parse JSON.") from e
    if not isinstance(obj, dict) or not isinstance(obj.get("employees"), list) \
            or not isinstance(obj.get("transactions"), list):
        raise ImportFormatError("Invalid JSON structure.")
    try:
        return Ledger.model_validate(obj)
    except ValidationError as e:
        raise ImportFormatError(f"Invalid JSON structure: {e.error_count()} invalid field(s)") from e
