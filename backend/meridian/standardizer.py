"""
MERIDIAN Standardizer: Payee Name Standardization

Turns a raw payee string into a canonical display name plus an ordered
log of the cleaning steps that actually changed it. Used as the dedup key
when collapsing rows before classification.

Handles:
- Whitespace, punctuation, apostrophe and hyphen cleanup
- Business entity suffixes, address tokens, titles, generational suffixes
- Embedded e-mail addresses and phone numbers
- Accent transliteration and abbreviation expansion
"""

import re
from collections import Counter
from typing import Iterable, NamedTuple

from unidecode import unidecode

from .config import (
    MOST_COMMON_STEPS_LIMIT,
    STANDARDIZE_CHUNK_SIZE,
    STANDARDIZE_CHUNK_SIZE_LARGE,
    LARGE_INPUT_ROWS,
    UNKNOWN_PAYEE,
    YIELD_DELAY_SECONDS,
)
from .scheduling import CancellationToken, ProgressCallback, process_in_chunks


class StandardizationResult(NamedTuple):
    """Result of payee name standardization."""
    original: str
    normalized: str
    cleaning_steps: tuple[str, ...]

    @property
    def changed(self) -> bool:
        return self.original != self.normalized


class StandardizationStats(NamedTuple):
    """Informational summary of a standardization pass."""
    total_processed: int
    changes_detected: int
    average_steps_per_name: float
    most_common_steps: tuple[tuple[str, int], ...]

    def to_dict(self) -> dict:
        return {
            "total_processed": self.total_processed,
            "changes_detected": self.changes_detected,
            "average_steps_per_name": self.average_steps_per_name,
            "most_common_steps": [
                {"step": step, "count": count} for step, count in self.most_common_steps
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StandardizationStats":
        return cls(
            total_processed=data["total_processed"],
            changes_detected=data["changes_detected"],
            average_steps_per_name=data["average_steps_per_name"],
            most_common_steps=tuple(
                (item["step"], item["count"]) for item in data.get("most_common_steps", [])
            ),
        )


class PayeeNameStandardizer:
    """
    Deterministic payee name standardizer.

    Every step is conditional: its tag is logged only when it changed
    the string. The pipeline is re-applied until the output is stable,
    so standardizing an already standardized name is a no-op.

    Example:
        >>> standardizer = PayeeNameStandardizer()
        >>> standardizer.standardize("  The Acme Widget Co., Inc. ").normalized
        'Acme Widget'
        >>> standardizer.standardize(None).normalized
        'UNKNOWN'
    """

    BUSINESS_SUFFIXES = [
        'LLC', 'LLP', 'LP', 'LLLP', 'INC', 'INCORPORATED', 'CORP', 'CORPORATION',
        'CO', 'COMPANY', 'LTD', 'LIMITED', 'PC', 'PLLC', 'PA', 'PROFESSIONAL ASSOCIATION',
        'CHARTERED', 'PLC', 'HOLDING', 'HOLDINGS', 'GROUP', 'ENTERPRISES', 'ENTERPRISE',
    ]

    ADDRESS_TERMS = [
        'STREET', 'ST', 'AVENUE', 'AVE', 'BOULEVARD', 'BLVD', 'DRIVE', 'DR',
        'ROAD', 'RD', 'LANE', 'LN', 'COURT', 'CT', 'CIRCLE', 'CIR',
        'PLACE', 'PL', 'SQUARE', 'SQ', 'NORTH', 'SOUTH', 'EAST', 'WEST',
        'N', 'S', 'E', 'W', 'NE', 'NW', 'SE', 'SW', 'SUITE', 'STE', 'UNIT',
    ]

    TITLES = [
        'MR', 'MRS', 'MS', 'MISS', 'DR', 'DOCTOR', 'PROF', 'PROFESSOR',
        'REV', 'REVEREND', 'HON', 'HONORABLE', 'SIR', 'MADAM', 'MADAME',
    ]

    GENERATIONAL_SUFFIXES = ['JR', 'SR', 'II', 'III', 'IV', 'V', 'JUNIOR', 'SENIOR']

    LEADING_ARTICLES = ['THE', 'A', 'AN']

    # Insertion order is the expansion order
    ABBREVIATIONS = {
        'CORP': 'CORPORATION',
        'CO': 'COMPANY',
        'ASSOC': 'ASSOCIATION',
        'ASSN': 'ASSOCIATION',
        'INTL': 'INTERNATIONAL',
        'NATL': 'NATIONAL',
        'FED': 'FEDERAL',
        'GOVT': 'GOVERNMENT',
        'DEPT': 'DEPARTMENT',
        'MGMT': 'MANAGEMENT',
        'SVCS': 'SERVICES',
        'TECH': 'TECHNOLOGY',
        'MFG': 'MANUFACTURING',
    }

    MAX_PASSES = 4

    def __init__(self):
        self._whitespace = re.compile(r'\s+')
        self._punctuation = re.compile(r'[.,;:!?\[\]{}()"`~@#$%^&*+=|\\/<>]')
        self._apostrophes = re.compile(r"['‘’`]")
        self._hyphens = re.compile(r'[-–—]')
        self._numbers = re.compile(r'\b\d+\b')
        self._ordinals = re.compile(r'\b(?:1ST|2ND|3RD|\d+TH)\b', re.IGNORECASE)
        # A suffix is only stripped when something precedes it
        self._business_suffix = re.compile(
            r'(?<=\S)\s+(?:' + self._alternation(self.BUSINESS_SUFFIXES) + r')\.?$',
            re.IGNORECASE,
        )
        self._address = re.compile(
            r'\b(?:' + self._alternation(self.ADDRESS_TERMS) + r')\b\.?',
            re.IGNORECASE,
        )
        self._title = re.compile(
            r'^(?:' + self._alternation(self.TITLES) + r')\.?\s+',
            re.IGNORECASE,
        )
        self._generational = re.compile(
            r'(?<=\S)\s+(?:' + self._alternation(self.GENERATIONAL_SUFFIXES) + r')\.?$',
            re.IGNORECASE,
        )
        self._article = re.compile(
            r'^(?:' + self._alternation(self.LEADING_ARTICLES) + r')\s+',
            re.IGNORECASE,
        )
        self._email = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
        self._email_only = re.compile(r'^[A-Za-z0-9._%+-]+@([^.\s@]+)(?:\.[^\s@]+)*$')
        self._phones = [
            re.compile(r'\(\d{3}\)\s?\d{3}[-.]?\d{4}'),
            re.compile(r'\b\d{3}[-.]?\d{3}[-.]?\d{4}\b'),
        ]
        self._abbreviations = [
            (abbr, full, re.compile(r'\b' + abbr + r'\b', re.IGNORECASE))
            for abbr, full in self.ABBREVIATIONS.items()
        ]

    @staticmethod
    def _alternation(words: list[str]) -> str:
        # Longest first so PROFESSIONAL ASSOCIATION beats PA
        return '|'.join(re.escape(w) for w in sorted(words, key=len, reverse=True))

    def _squash(self, text: str) -> str:
        return self._whitespace.sub(' ', text).strip()

    def standardize(self, raw) -> StandardizationResult:
        """
        Standardize a single payee name. Never raises.

        Args:
            raw: Raw cell value (any type; non-strings are treated as missing)

        Returns:
            StandardizationResult with the canonical name and step tags
        """
        if not raw or not isinstance(raw, str):
            return StandardizationResult(
                original='' if raw is None else str(raw),
                normalized=UNKNOWN_PAYEE,
                cleaning_steps=('handled_null_or_empty',),
            )

        normalized, steps = self._single_pass(raw)
        # Re-apply until stable; a removal can expose another suffix
        for _ in range(self.MAX_PASSES):
            if normalized == UNKNOWN_PAYEE:
                break
            again, more_steps = self._single_pass(normalized)
            if again == normalized:
                break
            normalized = again
            steps.extend(s for s in more_steps if s not in steps)

        return StandardizationResult(
            original=raw,
            normalized=normalized,
            cleaning_steps=tuple(steps),
        )

    def _single_pass(self, raw: str) -> tuple[str, list[str]]:
        steps: list[str] = []

        def apply(tag: str, before: str, after: str) -> str:
            after = self._squash(after)
            if after != before:
                steps.append(tag)
            return after

        # Step 1: Trim and collapse whitespace
        text = raw.strip()
        if text != raw:
            steps.append('trimmed_whitespace')
        collapsed = self._whitespace.sub(' ', text)
        if collapsed != text:
            steps.append('normalized_spaces')
        text = collapsed

        # E-mail addresses and phone numbers have to be caught before
        # punctuation and digits are stripped; their tags keep step order.
        email_identity = None
        email_match = self._email_only.match(text)
        if email_match:
            email_identity = email_match.group(1)
        without_emails = self._email.sub(' ', text)
        emails_removed = email_identity is None and without_emails != text
        text = without_emails if emails_removed else text

        without_phones = text
        for pattern in self._phones:
            without_phones = pattern.sub(' ', without_phones)
        phones_removed = without_phones != text
        text = self._squash(without_phones)

        # Step 2: Punctuation and special characters
        text = apply('removed_punctuation', text, self._punctuation.sub(' ', text))

        # Step 3: Apostrophes dropped, hyphens become spaces
        text = apply(
            'handled_apostrophes_hyphens',
            text,
            self._hyphens.sub(' ', self._apostrophes.sub('', text)),
        )

        # Step 4: Standalone numbers and ordinals
        text = apply(
            'removed_numbers',
            text,
            self._ordinals.sub('', self._numbers.sub('', text)),
        )

        # Step 5: Business entity suffixes, repeatedly ("Acme Holdings Inc")
        stripped = text
        while True:
            shorter = self._business_suffix.sub('', stripped)
            if shorter == stripped:
                break
            stripped = shorter
        text = apply('removed_business_suffixes', text, stripped)

        # Step 6: Address tokens and directionals
        text = apply('removed_address_terms', text, self._address.sub('', text))

        # Step 7: Honorific titles
        text = apply('removed_titles', text, self._title.sub('', text))

        # Step 8: Generational suffixes
        text = apply('removed_generational_suffixes', text, self._generational.sub('', text))

        # Step 9: Leading articles
        text = apply('removed_leading_articles', text, self._article.sub('', text))

        # Step 10: E-mail identity or stripped addresses
        if email_identity is not None:
            text = self._squash(self._hyphens.sub(' ', email_identity))
            steps.append('extracted_from_email')
        elif emails_removed:
            steps.append('removed_email_addresses')

        # Step 11: Phone numbers
        if phones_removed:
            steps.append('removed_phone_numbers')

        # Step 12: Accents and non-latin scripts
        text = apply('normalized_accents', text, unidecode(text))

        # Step 13: Abbreviation expansion
        for abbr, full, pattern in self._abbreviations:
            if pattern.search(text):
                text = pattern.sub(full, text)
                steps.append(f'expanded_{abbr.lower()}_abbreviation')

        # Step 14: Final cleanup
        text = self._squash(text)

        # Step 15: Title case
        titled = ' '.join(word[:1].upper() + word[1:] for word in text.lower().split(' '))
        if titled != text:
            steps.append('applied_title_case')
        text = titled

        # Step 16: Nothing left, or literally "unknown"
        if not text:
            text = UNKNOWN_PAYEE
            steps.append('fallback_to_unknown')
        elif text.upper() == UNKNOWN_PAYEE:
            text = UNKNOWN_PAYEE

        return text, steps


_default_standardizer: PayeeNameStandardizer | None = None


def _get_standardizer() -> PayeeNameStandardizer:
    global _default_standardizer
    if _default_standardizer is None:
        _default_standardizer = PayeeNameStandardizer()
    return _default_standardizer


def standardize_payee_name(raw) -> StandardizationResult:
    """Quick standardization using the shared standardizer."""
    return _get_standardizer().standardize(raw)


def batch_standardize(names: Iterable) -> list[StandardizationResult]:
    """Standardize names in order, synchronously."""
    standardizer = _get_standardizer()
    return [standardizer.standardize(name) for name in names]


async def batch_standardize_async(
    names: list,
    on_progress: ProgressCallback | None = None,
    cancel_token: CancellationToken | None = None,
) -> list[StandardizationResult]:
    """Standardize names in chunks, yielding to the event loop between chunks."""
    standardizer = _get_standardizer()
    chunk_size = (
        STANDARDIZE_CHUNK_SIZE_LARGE if len(names) > LARGE_INPUT_ROWS else STANDARDIZE_CHUNK_SIZE
    )
    return await process_in_chunks(
        names,
        lambda name, _index: standardizer.standardize(name),
        chunk_size=chunk_size,
        delay=YIELD_DELAY_SECONDS,
        on_progress=on_progress,
        cancel_token=cancel_token,
    )


def compute_standardization_stats(results: list[StandardizationResult]) -> StandardizationStats:
    """Summarize how much a standardization pass changed the input."""
    total = len(results)
    if total == 0:
        return StandardizationStats(0, 0, 0.0, ())

    step_counts: Counter = Counter()
    total_steps = 0
    changes = 0
    for result in results:
        step_counts.update(result.cleaning_steps)
        total_steps += len(result.cleaning_steps)
        if result.changed:
            changes += 1

    return StandardizationStats(
        total_processed=total,
        changes_detected=changes,
        average_steps_per_name=round(total_steps / total, 2),
        most_common_steps=tuple(step_counts.most_common(MOST_COMMON_STEPS_LIMIT)),
    )
