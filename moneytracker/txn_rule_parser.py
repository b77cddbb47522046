"""Rule-based parser for UPI / bank payment confirmation screenshots.

The parser works on plain OCR text and uses regex heuristics to extract:
amount, date, time, reference id, payment mode, counterparty and the
direction of the payment. Nothing here is authoritative: every field may come
back empty and the result is shown to the user for confirmation before it
becomes a ledger transaction.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

from .amount_extractor import extract_amount
from .schemas import Employee, ParsedCandidate


class RuleBasedTxnParser:
    def __init__(self) -> None:
        # 12/01/2024, 12-1-24, then 12 Jan 2024 / 12 January 24
        self.date_patterns = [
            re.compile(r"(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})"),
            re.compile(r"(\d{1,2}\s+[A-Za-z]{3,9}\s+\d{2,4})"),
        ]
        self.time_pattern = re.compile(r"(\d{1,2}:\d{2}(?::\d{2})?\s?(?:AM|PM|am|pm)?)")

        self.ref_pattern = re.compile(
            r"(?:UTR(?:\s*No\.?)?|UPI\s*Ref(?:erence)?(?:\s*No\.?)?|Ref(?:erence)?\s*No\.?|Txn\.?\s*ID|Transaction\s*ID)"
            r"\s*[:\-]?\s*([A-Z0-9\-]+)",
            re.IGNORECASE,
        )

        # Order matters: "upi" wins over the app names that also say UPI
        self.mode_keywords: List[Tuple[Tuple[str, ...], str]] = [
            (("upi",), "UPI"),
            (("imps",), "IMPS"),
            (("neft",), "NEFT"),
            (("rtgs",), "RTGS"),
            (("gpay", "google pay"), "GPay"),
            (("phonepe",), "PhonePe"),
            (("paytm",), "Paytm"),
        ]

        self.counterparty_patterns = [
            re.compile(r"paid to\s*[:\-]?\s*(.+)", re.IGNORECASE),
            re.compile(r"payment to\s*[:\-]?\s*(.+)", re.IGNORECASE),
            re.compile(r"payee name\s*[:\-]?\s*(.+)", re.IGNORECASE),
            re.compile(r"beneficiary(?: name)?\s*[:\-]?\s*(.+)", re.IGNORECASE),
            re.compile(r"^to\s+(.+)", re.IGNORECASE),
            re.compile(r"^from\s+(.+)", re.IGNORECASE),
            re.compile(r"received from\s+(.+)", re.IGNORECASE),
        ]

        self.return_words = re.compile(r"(credited|received|payment received|incoming)", re.IGNORECASE)
        self.outgoing_words = re.compile(
            r"(debited|paid to|payment to|sent to|transfer to|outgoing)", re.IGNORECASE
        )

    # Public API
    def parse(self, text: str, employees: Iterable[Employee] = ()) -> ParsedCandidate:
        print(f"📋 TxnRuleParser.parse: Starting rule-based parsing ({len(text or '')} chars)")
        text = text or ""
        amount = extract_amount(text)
        date, time = self.extract_date_time(text)
        ref = self.extract_ref(text)
        mode = self.extract_mode(text)
        counterparty = self.extract_counterparty(text)
        direction = self.detect_direction(text)
        employee_id = self.map_to_employee_id(counterparty, employees)
        print(
            f"📋 RULES: amount={amount} date={date} time={time} ref={ref} mode={mode} "
            f"counterparty={counterparty!r} direction={direction} employee={employee_id or '-'}"
        )
        return ParsedCandidate(
            amount=amount,
            date=date,
            time=time,
            ref=ref,
            mode=mode,
            counterparty=counterparty,
            direction=direction,
            employee_id=employee_id,
        )

    # Date / time
    def extract_date_time(self, text: str) -> Tuple[Optional[str], Optional[str]]:
        date = None
        for patt in self.date_patterns:
            m = patt.search(text)
            if m:
                date = m.group(1)
                break
        tm = self.time_pattern.search(text)
        time = tm.group(1) if tm else None
        return date, time

    # Reference
    def extract_ref(self, text: str) -> Optional[str]:
        m = self.ref_pattern.search(text)
        return m.group(1) if m else None

    # Mode
    def extract_mode(self, text: str) -> Optional[str]:
        low = text.lower()
        for needles, label in self.mode_keywords:
            if any(n in low for n in needles):
                return label
        return None

    # Counterparty
    def extract_counterparty(self, text: str) -> Optional[str]:
        lines = [ln.strip() for ln in re.split(r"\n+", text) if ln.strip()]
        for line in lines:
            for patt in self.counterparty_patterns:
                m = patt.search(line)
                if m:
                    return m.group(1).strip()
        return None

    # Direction
    def detect_direction(self, text: str) -> str:
        is_return = bool(self.return_words.search(text))
        is_outgoing = bool(self.outgoing_words.search(text))
        if is_return and not is_outgoing:
            return "return"
        if is_outgoing and not is_return:
            return "outgoing"
        return "unknown"

    # Employee matching
    def map_to_employee_id(self, counterparty: Optional[str], employees: Iterable[Employee]) -> str:
        if not counterparty:
            return ""
        low = counterparty.lower()
        for emp in employees:
            name = (emp.name or "").strip().lower()
            if name and name in low:
                return emp.id
        return ""
