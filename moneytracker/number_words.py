"""Spelled-out rupee amounts ("two lakh fifty rupees only") to numbers.

Indian numbering scale: lakh = 1,00,000 and crore = 1,00,00,000.
"""

from __future__ import annotations

import re
from typing import Optional

UNITS = {
    'zero': 0, 'one': 1, 'two': 2, 'three': 3, 'four': 4, 'five': 5,
    'six': 6, 'seven': 7, 'eight': 8, 'nine': 9, 'ten': 10,
    'eleven': 11, 'twelve': 12, 'thirteen': 13, 'fourteen': 14,
    'fifteen': 15, 'sixteen': 16, 'seventeen': 17, 'eighteen': 18,
    'nineteen': 19,
}
TENS = {
    'twenty': 20, 'thirty': 30, 'forty': 40, 'fifty': 50,
    'sixty': 60, 'seventy': 70, 'eighty': 80, 'ninety': 90,
}
SCALES = {
    'hundred': 100, 'thousand': 1000,
    'lakh': 100000, 'lacs': 100000, 'lakhs': 100000,
    'crore': 10000000, 'crores': 10000000,
}
FILLER = {'and', 'rupees', 'rs', 'only'}


def words_to_number(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    text = re.sub(r"[^a-z\s\-]", " ", raw.lower())
    text = re.sub(r"\s+", " ", text).strip()

    total = 0
    current = 0
    seen = False
    # "twenty-five" counts as two words
    for token in re.split(r"[\s\-]+", text):
        if token in FILLER:
            continue
        if token in UNITS:
            current += UNITS[token]
            seen = True
        elif token in TENS:
            current += TENS[token]
            seen = True
        elif token in SCALES:
            if current == 0:
                current = 1
            current *= SCALES[token]
            total += current
            current = 0
            seen = True
    total += current
    if not seen or total == 0:
        return None
    return float(total)
