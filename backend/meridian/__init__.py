"""
MERIDIAN: Payee Mapping, Classification Reconciliation & Duplicate Detection

Takes a table of records with a free-text payee column, collapses rows
onto unique standardized payees, classifies the unique set through an
external oracle in bounded chunks, and puts the results back onto every
original row with exact row-count preservation. Independently finds
near-duplicate payees with tiered scoring and an AI judge for the
ambiguous middle.

Components:
- standardizer: payee name standardization with step log
- rowmap: row mapper, chunk splitter, reconciler
- duplicates: duplicate tiering engine
- oracle: classification oracle / AI judge ports and adapters

Shared modules:
- similarity: RapidFuzz metrics and the composite payee score
- phonetic: American Soundex
- blocking: blocking strategy engine
- scheduling, resilience, cache
"""

__version__ = "1.0.0"

from .standardizer import PayeeNameStandardizer, StandardizationResult, standardize_payee_name
from .models import ClassificationResult, PayeeRowData, RowMapping
from .rowmap import create_row_mapping, reconcile, split_for_submission
from .duplicates import DuplicateDetectionEngine, detect_duplicates

__all__ = [
    "PayeeNameStandardizer",
    "StandardizationResult",
    "standardize_payee_name",
    "ClassificationResult",
    "PayeeRowData",
    "RowMapping",
    "create_row_mapping",
    "split_for_submission",
    "reconcile",
    "DuplicateDetectionEngine",
    "detect_duplicates",
]
