"""
Comparison keys for duplicate detection.

Deliberately separate from the payee standardizer: this key folds every
business-entity word into one BUSINESS token and then drops it from the
end, so "Christa INC" and "CHRISTA" compare as the same key.
"""

import re
from typing import NamedTuple

from unidecode import unidecode

BUSINESS_WORDS = [
    'INCORPORATED', 'INC', 'CORPORATION', 'CORP', 'LLC', 'LTD', 'LIMITED',
    'COMPANY', 'CO', 'ENTERPRISES', 'ENTERPRISE', 'GROUP', 'PARTNERSHIP', 'PARTNERS',
]

_NON_WORD = re.compile(r'[^\w\s]|_')
_WHITESPACE = re.compile(r'\s+')
_BUSINESS = re.compile(r'\b(?:' + '|'.join(BUSINESS_WORDS) + r')\b')
_TRAILING_BUSINESS = re.compile(r'(?<=\S)\s+BUSINESS$')


class ComparisonKey(NamedTuple):
    """Duplicate-detection key for one record."""
    key: str
    tokens: tuple[str, ...]
    first_token: str


def normalize_for_duplicate_detection(name: str) -> str:
    """
    Build the comparison key for a raw payee name.

    Example:
        >>> normalize_for_duplicate_detection("Apple, Inc.")
        'APPLE'
        >>> normalize_for_duplicate_detection("Smith & Jones Partners LLC")
        'SMITH JONES'
    """
    if not name or not isinstance(name, str):
        return ''

    # Step 1: Uppercase, transliterate, strip punctuation
    text = unidecode(name).upper().strip()
    text = _NON_WORD.sub(' ', text)
    text = _WHITESPACE.sub(' ', text).strip()

    # Step 2: Fold entity words into one token
    text = _BUSINESS.sub('BUSINESS', text)

    # Step 3: Drop trailing BUSINESS tokens ("APPLE BUSINESS BUSINESS")
    while True:
        shorter = _TRAILING_BUSINESS.sub('', text)
        if shorter == text:
            break
        text = shorter

    return text


def build_comparison_key(name: str) -> ComparisonKey:
    key = normalize_for_duplicate_detection(name)
    tokens = tuple(key.split())
    return ComparisonKey(key=key, tokens=tokens, first_token=tokens[0] if tokens else '')
