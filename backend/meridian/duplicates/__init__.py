"""
Duplicate detection among unique payee names.

Pipeline:
1. normalize - comparison keys with business words folded away
2. engine    - composite scoring, tiering, AI judgment for Ambiguous pairs
3. grouping  - union-find over duplicate pairs
"""

from .models import (
    AIJudgment,
    DuplicateDetectionConfig,
    DuplicateDetectionResult,
    DuplicateGroup,
    DuplicatePair,
    DuplicateRecord,
    ProcessedRecord,
)
from .normalize import normalize_for_duplicate_detection
from .engine import DuplicateDetectionEngine, classify_tier, detect_duplicates

__all__ = [
    "AIJudgment",
    "DuplicateDetectionConfig",
    "DuplicateDetectionEngine",
    "DuplicateDetectionResult",
    "DuplicateGroup",
    "DuplicatePair",
    "DuplicateRecord",
    "ProcessedRecord",
    "classify_tier",
    "detect_duplicates",
    "normalize_for_duplicate_detection",
]
