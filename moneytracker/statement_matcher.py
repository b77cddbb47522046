"""Reconcile bank / CA statement entries against pending return transactions.

Matching is amount first, date second: entries are bucketed by amount and a
return transaction takes the first entry in its bucket dated within two days
of it. Only empty ref / mode / source fields are filled, so running the
matcher again over the same statement changes nothing.
"""

from __future__ import annotations

import re
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from .schemas import StatementEntry, Transaction

MATCH_WINDOW_DAYS = 2
SOURCE_MAX_CHARS = 140

MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'sept': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}

ISO_DATE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
NUMERIC_DATE = re.compile(r"\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\b")
TEXT_DATE = re.compile(r"\b(\d{1,2})[\s\-]+([A-Za-z]{3,9})\.?[\s\-,]+(\d{2,4})\b")


def _iso(year: int, month: int, day: int) -> str:
    if year < 100:
        year += 2000
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return ""


def normalize_date_key(raw: Optional[str]) -> str:
    """Return ``YYYY-MM-DD`` for the first recognizable date in ``raw``, else ``""``."""
    s = str(raw or "").strip()
    if not s:
        return ""
    m = ISO_DATE.search(s)
    if m:
        return _iso(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    m = NUMERIC_DATE.search(s)
    if m:
        return _iso(int(m.group(3)), int(m.group(2)), int(m.group(1)))
    m = TEXT_DATE.search(s)
    if m:
        word = m.group(2).lower()
        month = MONTHS.get(word[:4]) or MONTHS.get(word[:3])
        if month:
            return _iso(int(m.group(3)), month, int(m.group(1)))
    return ""


def within_two_days(a: str, b: str) -> bool:
    if not a or not b:
        return False
    delta = date.fromisoformat(a) - date.fromisoformat(b)
    return abs(delta.days) <= MATCH_WINDOW_DAYS


def _amount_key(amount: float) -> float:
    return round(float(amount), 2)


def bucket_by_amount(entries: Iterable[StatementEntry]) -> Dict[float, List[StatementEntry]]:
    buckets: Dict[float, List[StatementEntry]] = defaultdict(list)
    for entry in entries:
        buckets[_amount_key(entry.amount)].append(entry)
    return buckets


def match_statement(entries: Iterable[StatementEntry], transactions: List[Transaction]) -> int:
    """Backfill matched return transactions in place; return how many changed."""
    entries = list(entries)
    print(f"🏦 StatementMatcher: {len(entries)} statement entries vs {len(transactions)} transactions")
    buckets = bucket_by_amount(entries)
    entry_keys = {id(e): normalize_date_key(e.date) for e in entries}

    updated = 0
    for txn in transactions:
        if txn.type != "return":
            continue
        candidates = buckets.get(_amount_key(txn.amount))
        if not candidates:
            continue
        txn_key = normalize_date_key(txn.date)
        hit = next((e for e in candidates if within_two_days(entry_keys[id(e)], txn_key)), None)
        if hit is None:
            continue
        changed = False
        if not txn.ref and hit.ref:
            txn.ref = hit.ref
            changed = True
        if not txn.mode and hit.mode:
            txn.mode = hit.mode
            changed = True
        if not txn.source and hit.desc:
            txn.source = hit.desc[:SOURCE_MAX_CHARS]
            changed = True
        if changed:
            updated += 1
    print(f"🏦 StatementMatcher: updated {updated} transactions")
    return updated
