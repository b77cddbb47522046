"""Weighted amount extraction from payment-screenshot OCR text.

Every rule runs over the whole text and contributes (value, weight)
candidates; the best candidate wins. Weights:

    5    currency marker (₹ / Rs / INR) directly before the number
    4    amount keyword on the line (amount, debited, paid, ...)
    3    amount in words ending in rupees / rs / only
    2    any number >= 50 written with thousands separators
    1.2  any bare number >= 50

Clock-time lines are skipped by the fallback rules, as are bare digit runs of
9+ digits (phone, account and UTR numbers rather than money).
"""

from __future__ import annotations

import re
from typing import List, NamedTuple, Optional

from .number_words import words_to_number

# A digit, then digits / commas / OCR glyphs standing in for digits, or a
# space that separates a 2-3 digit group ("1 20 000").
NUMBER = (
    r"\d(?:[\d,]|[OoIl](?=[OoIl]?\d)|\s(?=\d{2,3}(?:[^\d]|$)))*"
    r"(?:\.\d{1,2})?"
)

CURRENCY_LINE = re.compile(r"(₹|\brs(?![a-z])\.?|\binr(?![a-z]))", re.IGNORECASE)
CURRENCY_AMOUNT = re.compile(r"(?:₹|\brs(?![a-z])\.?|\binr(?![a-z]))\s*(" + NUMBER + r")", re.IGNORECASE)
KEYWORD_LINE = re.compile(r"(total amount|amount|debited|credited|paid|transfer)", re.IGNORECASE)
NUMBER_TOKEN = re.compile("(" + NUMBER + ")")
WORDS_AMOUNT = re.compile(r"([A-Za-z\s\-]+)\s+(?:rupees|rs\.?|only)\b", re.IGNORECASE)
TIME_DIGITS = re.compile(r"\d{1,2}:\d{2}")
TIME_MERIDIEM = re.compile(r"(am|pm)\b", re.IGNORECASE)

MIN_FALLBACK_AMOUNT = 50
LONG_DIGIT_RUN = 9


class AmountCandidate(NamedTuple):
    value: float
    weight: float
    rule: str


def line_looks_like_time(line: str) -> bool:
    return bool(TIME_DIGITS.search(line)) and bool(TIME_MERIDIEM.search(line))


def clean_numeric_token(token: str) -> str:
    token = re.sub(r"[Oo]", "0", token)
    token = re.sub(r"[Il]", "1", token)
    return re.sub(r"[,\s]", "", token)


def _to_number(token: str) -> Optional[float]:
    try:
        return float(clean_numeric_token(token))
    except ValueError:
        return None


def _lines(text: str) -> List[str]:
    return [ln.strip() for ln in re.split(r"\n+", text or "") if ln.strip()]


def amount_candidates(text: str) -> List[AmountCandidate]:
    cands: List[AmountCandidate] = []

    def add(value: Optional[float], weight: float, rule: str) -> None:
        if value is None or value != value:  # NaN
            return
        cands.append(AmountCandidate(float(value), weight, rule))

    lines = _lines(text)

    for line in lines:
        if CURRENCY_LINE.search(line):
            m = CURRENCY_AMOUNT.search(line)
            if m:
                add(_to_number(m.group(1)), 5, "currency")

    for line in lines:
        if KEYWORD_LINE.search(line):
            m = NUMBER_TOKEN.search(line)
            if m:
                add(_to_number(m.group(1)), 4, "keyword")

    wm = WORDS_AMOUNT.search(text or "")
    if wm:
        add(words_to_number(wm.group(1)), 3, "words")

    for line in lines:
        if line_looks_like_time(line):
            continue
        for m in NUMBER_TOKEN.finditer(line):
            raw = m.group(1)
            value = _to_number(raw)
            if value is None or value < MIN_FALLBACK_AMOUNT:
                continue
            separated = bool(re.search(r"[,\s]", raw))
            if not separated and len(re.sub(r"\D", "", raw)) >= LONG_DIGIT_RUN:
                continue
            add(value, 2 if separated else 1.2, "separated" if separated else "bare")

    return cands


def pick_best(candidates: List[AmountCandidate]) -> Optional[float]:
    if not candidates:
        return None
    ranked = sorted(candidates, key=lambda c: (-c.weight, -c.value))
    return ranked[0].value


def extract_amount(text: str) -> Optional[float]:
    return pick_best(amount_candidates(text))
