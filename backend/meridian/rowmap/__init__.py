"""
Row mapping, chunking and reconciliation.

Rows are collapsed onto unique standardized payees, the unique set is
split into oracle-sized chunks, and classification results are put back
onto every original row.
"""

from .mapper import (
    collect_duplicate_candidates,
    create_row_mapping,
    create_row_mapping_async,
    verify_row_mappings,
)
from .chunking import calculate_chunked_progress, merge_chunk_results, split_for_submission
from .reconciler import MappedRow, build_mapped_row, reconcile, reconcile_async

__all__ = [
    "create_row_mapping",
    "create_row_mapping_async",
    "collect_duplicate_candidates",
    "verify_row_mappings",
    "split_for_submission",
    "merge_chunk_results",
    "calculate_chunked_progress",
    "reconcile",
    "reconcile_async",
    "build_mapped_row",
    "MappedRow",
]
