"""
Row Mapper: collapses rows onto unique standardized payee names.

Every original row gets exactly one RowMapping pointing at its unique
payee index. The mapper never skips a row; blank payees dedup under
UNKNOWN like any other key.
"""

from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from ..config import UNKNOWN_ROW_PREFIX
from ..errors import InputValidationError, StructuralInvariantViolation
from ..models import PayeeRowData, RowMapping
from ..scheduling import CancellationToken, ProgressCallback
from ..standardizer import (
    StandardizationResult,
    batch_standardize,
    batch_standardize_async,
    compute_standardization_stats,
)

logger = structlog.get_logger("meridian.rowmap")


def validate_rows(rows: Any, payee_column: Any) -> None:
    """Pre-flight checks. Raises InputValidationError before any work starts."""
    if not isinstance(payee_column, str) or not payee_column.strip():
        raise InputValidationError("Payee column name must be a non-empty string")
    if isinstance(rows, (str, bytes)) or not isinstance(rows, Sequence):
        raise InputValidationError("Rows must be a list of records")
    if len(rows) == 0:
        raise InputValidationError("No rows to process")

    for i, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise InputValidationError(
                f"Row {i} is not a record",
                details={"row_index": i, "type": type(row).__name__},
            )

    if not any(payee_column in row for row in rows):
        raise InputValidationError(
            f"Payee column '{payee_column}' not found in any row",
            details={"payee_column": payee_column, "available_columns": sorted(rows[0].keys())},
        )


def _build_payee_row_data(
    rows: Sequence[Mapping[str, Any]],
    payee_column: str,
    standardized: list[StandardizationResult],
) -> PayeeRowData:
    key_to_index: dict[str, int] = {}
    unique_names: list[str] = []
    unique_normalized: list[str] = []
    mappings: list[RowMapping] = []

    for row_index, result in enumerate(standardized):
        key = result.normalized
        unique_index = key_to_index.get(key)
        display_name = result.original.strip() or f"{UNKNOWN_ROW_PREFIX}{row_index}"

        if unique_index is None:
            unique_index = len(unique_names)
            key_to_index[key] = unique_index
            unique_names.append(display_name)
            unique_normalized.append(key)

        mappings.append(RowMapping(
            original_row_index=row_index,
            payee_name=display_name,
            normalized_payee_name=key,
            unique_payee_index=unique_index,
            standardization_result=result,
        ))

    verify_row_mappings(mappings, len(rows), len(unique_names))

    stats = compute_standardization_stats(standardized)
    logger.info(
        "row_mapping_complete",
        rows=len(rows),
        unique_payees=len(unique_names),
        duplicates_collapsed=len(rows) - len(unique_names),
        changes_detected=stats.changes_detected,
        average_steps_per_name=stats.average_steps_per_name,
    )

    return PayeeRowData(
        unique_payee_names=tuple(unique_names),
        unique_normalized_names=tuple(unique_normalized),
        row_mappings=tuple(mappings),
        original_file_data=tuple(rows),
        standardization_stats=stats,
        payee_column=payee_column,
    )


def verify_row_mappings(mappings: Sequence[RowMapping], row_count: int, unique_count: int) -> None:
    """Assert one mapping per row, no repeated row index, valid unique indices."""
    if len(mappings) != row_count:
        raise StructuralInvariantViolation(
            "Row mapping failed", expected=row_count, actual=len(mappings),
            message=f"Row mapping failed - expected {row_count} mappings, got {len(mappings)}",
        )

    seen: set[int] = set()
    for mapping in mappings:
        idx = mapping.original_row_index
        if idx in seen:
            raise StructuralInvariantViolation(
                "Duplicate original row index", expected="unique", actual=idx,
                message=f"Duplicate original row index detected: {idx}",
            )
        if not 0 <= idx < row_count:
            raise StructuralInvariantViolation(
                "Original row index out of range", expected=f"[0, {row_count})", actual=idx,
            )
        if not 0 <= mapping.unique_payee_index < unique_count:
            raise StructuralInvariantViolation(
                "Unique payee index out of range",
                expected=f"[0, {unique_count})", actual=mapping.unique_payee_index,
            )
        seen.add(idx)


def _payee_values(rows: Sequence[Mapping[str, Any]], payee_column: str) -> list:
    return [row.get(payee_column) for row in rows]


def create_row_mapping(rows: Sequence[Mapping[str, Any]], payee_column: str) -> PayeeRowData:
    """
    Standardize every row's payee and collapse rows onto unique names.

    Args:
        rows: Original records (opaque beyond the payee column)
        payee_column: Name of the column holding the payee

    Returns:
        PayeeRowData with one RowMapping per row

    Raises:
        InputValidationError: rows or column unusable
        StructuralInvariantViolation: mapping count or index checks failed
    """
    validate_rows(rows, payee_column)
    standardized = batch_standardize(_payee_values(rows, payee_column))
    return _build_payee_row_data(rows, payee_column, standardized)


async def create_row_mapping_async(
    rows: Sequence[Mapping[str, Any]],
    payee_column: str,
    on_progress: ProgressCallback | None = None,
    cancel_token: CancellationToken | None = None,
) -> PayeeRowData:
    """Same as create_row_mapping, standardizing in cooperative chunks."""
    validate_rows(rows, payee_column)
    standardized = await batch_standardize_async(
        _payee_values(rows, payee_column),
        on_progress=on_progress,
        cancel_token=cancel_token,
    )
    return _build_payee_row_data(rows, payee_column, standardized)


def collect_duplicate_candidates(payee_row_data: PayeeRowData) -> list[dict]:
    """
    Build duplicate-detection input keyed on the original payee spelling.

    Unlike the classification collapse, two spellings that standardize to
    the same key stay separate here; blank payees are left out.

    Returns:
        [{"id": "row-<first row index>", "name": <original name>}, ...]
    """
    seen: set[str] = set()
    records = []
    for mapping in payee_row_data.row_mappings:
        name = mapping.standardization_result.original.strip()
        if not name or name in seen:
            continue
        seen.add(name)
        records.append({"id": f"row-{mapping.original_row_index}", "name": name})
    return records
