"""Bank / CA statement readers.

Every statement format is reduced to canonical ``StatementEntry`` records:
tabular sources (CSV, XLSX) row by row through ``map_statement_row``, text
sources (TXT, PDF page text) line by line through ``parse_statement_lines``.
"""

from __future__ import annotations

import io
import re
from typing import Dict, Iterable, List, Optional

import fitz  # PyMuPDF
import pandas as pd

from .schemas import StatementEntry
from .statement_matcher import ISO_DATE, NUMERIC_DATE, TEXT_DATE


class StatementFormatError(ValueError):
    """The statement file could not be read at all."""


HEADER_FRAGMENTS: Dict[str, List[str]] = {
    "date": ["date", "txn date", "value date", "posting"],
    "amount": ["amount", "credit", "cr amount", "deposit"],
    "desc": ["description", "narration", "remark", "details"],
    "ref": ["utr", "ref", "reference", "txn id", "upi ref"],
    "mode": ["mode", "channel", "type"],
}

MODE_KEYWORDS = ["UPI", "NEFT", "IMPS", "RTGS", "PhonePe", "GPay", "Paytm"]

REF_TOKEN = re.compile(r"[A-Za-z0-9]{8,}")
# UTR-like run inside free text: 12+ alphanumerics with at least one digit
DESC_REF_TOKEN = re.compile(r"\b(?=[A-Za-z]*\d)[A-Za-z0-9]{12,}\b")
MONEY_TOKEN = re.compile(r"(?<![\d.])(\d{1,3}(?:,\d{2,3})+(?:\.\d{1,2})?|\d+\.\d{2})(?![\d])")
CURRENCY_MARK = re.compile(r"₹|\b(?:rs|inr)(?![a-z])\.?", re.IGNORECASE)
NUMBER_TOKEN = re.compile(r"(-|\()?\s*(\d[\d,]*(?:\.\d+)?)")
DEBIT_MARK = re.compile(r"\bdr\b", re.IGNORECASE)


def normalize_header(header: object) -> str:
    h = str(header or "").strip().lower().replace("_", " ")
    return re.sub(r"\s+", " ", h)


def parse_number(value: object) -> Optional[float]:
    """First number in a money cell; a leading '-', parentheses or a Dr marker make it negative."""
    s = CURRENCY_MARK.sub(" ", str(value if value is not None else ""))
    m = NUMBER_TOKEN.search(s)
    if not m:
        return None
    try:
        number = float(m.group(2).replace(",", ""))
    except ValueError:
        return None
    if m.group(1) or DEBIT_MARK.search(s):
        return -number
    return number


def resolve_column(headers: List[str], fragments: List[str]) -> Optional[str]:
    for frag in fragments:
        for h in headers:
            if frag in normalize_header(h):
                return h
    return None


def _find_column(headers: List[str], test) -> Optional[str]:
    for h in headers:
        if test(normalize_header(h)):
            return h
    return None


def mode_from_text(text: str) -> str:
    low = (text or "").lower()
    for label in MODE_KEYWORDS:
        if label.lower() in low:
            return label
    return ""


def ref_from_value(value: str) -> str:
    m = REF_TOKEN.search(value or "")
    return m.group(0) if m else ""


def ref_from_description(desc: str) -> str:
    m = DESC_REF_TOKEN.search(desc or "")
    return m.group(0) if m else ""


def _cell(row: Dict[str, object], col: Optional[str]) -> str:
    if col is None:
        return ""
    value = row.get(col)
    if value is None or (isinstance(value, float) and value != value):
        return ""
    return str(value).strip()


def map_statement_row(row: Dict[str, object]) -> Optional[StatementEntry]:
    headers = list(row.keys())
    date_col = resolve_column(headers, HEADER_FRAGMENTS["date"])
    amount_col = resolve_column(headers, HEADER_FRAGMENTS["amount"])
    desc_col = resolve_column(headers, HEADER_FRAGMENTS["desc"])
    ref_col = resolve_column(headers, HEADER_FRAGMENTS["ref"])
    mode_col = resolve_column(headers, HEADER_FRAGMENTS["mode"])

    amount = parse_number(_cell(row, amount_col)) if amount_col else None
    if amount is None or amount <= 0:
        credit_col = _find_column(headers, lambda h: "credit" in h or "deposit" in h or h == "cr")
        debit_col = _find_column(headers, lambda h: "debit" in h or "withdrawal" in h or h == "dr")
        credit = parse_number(_cell(row, credit_col))
        debit = parse_number(_cell(row, debit_col))
        if credit is not None and credit > 0:
            amount = credit
        elif debit is not None and debit > 0:
            amount = debit
        else:
            amount = None
    if amount is None:
        return None

    desc = _cell(row, desc_col)
    ref = ref_from_value(_cell(row, ref_col)) if ref_col else ref_from_description(desc)
    mode = _cell(row, mode_col) if mode_col else ""
    if not mode:
        mode = mode_from_text(desc)
    return StatementEntry(date=_cell(row, date_col), amount=amount, desc=desc, ref=ref, mode=mode)


def map_statement_rows(rows: Iterable[Dict[str, object]]) -> List[StatementEntry]:
    entries: List[StatementEntry] = []
    for row in rows:
        entry = map_statement_row(row)
        if entry is not None:
            entries.append(entry)
    return entries


def _first_date(line: str):
    for patt in (ISO_DATE, NUMERIC_DATE, TEXT_DATE):
        m = patt.search(line)
        if m:
            return m
    return None


def parse_statement_line(line: str) -> Optional[StatementEntry]:
    line = re.sub(r"\s+", " ", line or "").strip()
    dm = _first_date(line)
    if not dm:
        return None
    rest = line[dm.end():]
    am = MONEY_TOKEN.search(rest)
    if not am:
        return None
    amount = parse_number(am.group(1))
    if amount is None or amount <= 0:
        return None
    desc = (rest[:am.start()] + " " + rest[am.end():]).strip(" -|")
    desc = re.sub(r"\s+", " ", desc)
    return StatementEntry(
        date=dm.group(0),
        amount=amount,
        desc=desc,
        ref=ref_from_description(desc),
        mode=mode_from_text(desc),
    )


def parse_statement_lines(lines: Iterable[str]) -> List[StatementEntry]:
    entries: List[StatementEntry] = []
    for line in lines:
        entry = parse_statement_line(line)
        if entry is not None:
            entries.append(entry)
    return entries


# --- File readers -------------------------------------------------------------------------
def _rows_from_frame(df: pd.DataFrame) -> List[Dict[str, object]]:
    df = df.fillna("")
    return [{str(k): v for k, v in rec.items()} for rec in df.to_dict(orient="records")]


def read_csv_statement(data: bytes) -> List[StatementEntry]:
    try:
        df = pd.read_csv(io.BytesIO(data), dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise StatementFormatError(f"Could not read CSV statement: {e}") from e
    return map_statement_rows(_rows_from_frame(df))


def read_excel_statement(data: bytes) -> List[StatementEntry]:
    try:
        df = pd.read_excel(io.BytesIO(data), sheet_name=0, dtype=str)
    except Exception as e:
        raise StatementFormatError(f"Could not read spreadsheet statement: {e}") from e
    return map_statement_rows(_rows_from_frame(df))


def pdf_text_lines(data: bytes) -> List[str]:
    lines: List[str] = []
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise StatementFormatError(f"Could not open PDF statement: {e}") from e
    try:
        for page in doc:
            lines.extend(page.get_text("text").splitlines())
    finally:
        doc.close()
    return lines


def read_statement(filename: str, data: bytes) -> List[StatementEntry]:
    name = (filename or "").lower()
    print(f"🏦 READ STATEMENT: file={filename}, size={len(data or b'')} bytes")
    if name.endswith(".csv"):
        entries = read_csv_statement(data)
    elif name.endswith((".xlsx", ".xls")):
        entries = read_excel_statement(data)
    elif name.endswith(".pdf"):
        entries = parse_statement_lines(pdf_text_lines(data))
    else:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise StatementFormatError(f"Statement is not UTF-8 text: {e}") from e
        entries = parse_statement_lines(text.splitlines())
    print(f"🏦 STATEMENT ENTRIES: {len(entries)}")
    return entries
