"""
Classification Reconciler: puts per-unique-payee results back onto rows.

Output length always equals input row count. Every row's classification
is looked up through its own unique payee index. Any count or index
mismatch is fatal; nothing is patched over.
"""

from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from ..config import (
    DEFAULT_CLASSIFICATION,
    DEFAULT_CONFIDENCE,
    DEFAULT_REASONING,
    FAILED_TIER,
    LARGE_INPUT_ROWS,
    RECONCILE_CHUNK_SIZE,
    RECONCILE_CHUNK_SIZE_LARGE,
    REVIEW_CONFIDENCE_BELOW,
    YIELD_DELAY_LARGE_ROWS,
    YIELD_DELAY_SECONDS,
    YIELD_DELAY_SECONDS_LARGE,
    get_quality_level,
)
from ..duplicates.models import DuplicateDetectionResult, ProcessedRecord
from ..errors import StructuralInvariantViolation
from ..models import ClassificationResult, PayeeRowData, RowMapping
from ..scheduling import CancellationToken, ProgressCallback, process_in_chunks

logger = structlog.get_logger("meridian.rowmap.reconciler")

MappedRow = dict[str, Any]

DUPLICATE_DEFAULTS = {
    "is_potential_duplicate": "No",
    "duplicate_of_payee_name": "",
    "duplicate_confidence_score": 0,
    "duplicate_detection_method": "Not Analyzed",
    "duplicate_group_id": "",
    "ai_duplicate_reasoning": "",
}


class _Reconciliation:
    """One reconcile run: preconditions on entry, postconditions in finish()."""

    def __init__(
        self,
        classification_results: Sequence[ClassificationResult | None],
        payee_row_data: PayeeRowData,
        duplicate_result: DuplicateDetectionResult | None,
    ):
        unique_count = payee_row_data.unique_count
        row_count = payee_row_data.row_count

        if len(classification_results) != unique_count:
            raise StructuralInvariantViolation(
                "Classification results mismatch", expected=unique_count,
                actual=len(classification_results),
                message=(
                    f"Classification results mismatch: expected {unique_count} "
                    f"unique payees, got {len(classification_results)}"
                ),
            )
        if len(payee_row_data.row_mappings) != row_count:
            raise StructuralInvariantViolation(
                "Row mapping mismatch", expected=row_count,
                actual=len(payee_row_data.row_mappings),
                message=(
                    f"Row mapping mismatch: expected {row_count} mappings, "
                    f"got {len(payee_row_data.row_mappings)}"
                ),
            )

        self.results = classification_results
        self.data = payee_row_data
        self.output: list[MappedRow | None] = [None] * row_count
        self.processed: set[int] = set()
        self.failed_results = 0
        self.duplicates_by_name: dict[str, ProcessedRecord] = (
            duplicate_result.records_by_name() if duplicate_result else {}
        )

    def process(self, mapping: RowMapping, _position: int = 0) -> None:
        row_index = mapping.original_row_index
        if row_index in self.processed:
            raise StructuralInvariantViolation(
                "Duplicate processing", expected="once", actual=row_index,
                message=f"Duplicate processing detected for row {row_index}",
            )
        if not 0 <= row_index < len(self.output):
            raise StructuralInvariantViolation(
                "Missing original row", expected=f"[0, {len(self.output)})", actual=row_index,
                message=f"Original row not found for index {row_index}",
            )
        if not 0 <= mapping.unique_payee_index < len(self.results):
            raise StructuralInvariantViolation(
                "Missing classification", expected=f"[0, {len(self.results)})",
                actual=mapping.unique_payee_index,
                message=f"No classification for unique payee index {mapping.unique_payee_index}",
            )

        original_row = self.data.original_file_data[row_index]
        result = self.results[mapping.unique_payee_index]
        if result is None or result.failed:
            self.failed_results += 1

        self.output[row_index] = build_mapped_row(
            original_row, mapping, result, self.duplicates_by_name,
        )
        self.processed.add(row_index)

    def finish(self) -> list[MappedRow]:
        expected = self.data.row_count
        if len(self.output) != expected:
            raise StructuralInvariantViolation(
                "Output length", expected=expected, actual=len(self.output),
                message=f"Output length {len(self.output)} does not match input length {expected}",
            )
        for i, row in enumerate(self.output):
            if row is None:
                raise StructuralInvariantViolation(
                    "Missing result", expected="filled", actual="empty",
                    message=f"Missing result at row {i}",
                )
        if len(self.processed) != expected:
            raise StructuralInvariantViolation(
                "Not all rows processed", expected=expected, actual=len(self.processed),
                message=f"Not all rows processed: {len(self.processed)}/{expected}",
            )

        logger.info(
            "reconciliation_complete",
            rows=expected,
            unique_payees=len(self.results),
            failed_results=self.failed_results,
        )
        return list(self.output)


def build_mapped_row(
    original_row: Mapping[str, Any],
    mapping: RowMapping,
    result: ClassificationResult | None,
    duplicates_by_name: Mapping[str, ProcessedRecord] | None = None,
) -> MappedRow:
    """Merge original fields, classification, standardization and duplicate info."""
    row: MappedRow = dict(original_row)

    if result is None:
        classification = DEFAULT_CLASSIFICATION
        confidence = DEFAULT_CONFIDENCE
        reasoning = DEFAULT_REASONING
        tier = FAILED_TIER
        status = "failed"
        error = "Missing classification result"
        industry_code = industry_description = ""
    else:
        classification = result.classification or DEFAULT_CLASSIFICATION
        confidence = result.confidence if result.confidence is not None else DEFAULT_CONFIDENCE
        reasoning = result.reasoning or DEFAULT_REASONING
        tier = FAILED_TIER if result.failed else (result.processing_tier or FAILED_TIER)
        status = result.status
        error = result.error or ""
        industry_code = result.industry_code or ""
        industry_description = result.industry_description or ""

    row.update({
        "ai_classification": classification,
        "ai_confidence": confidence,
        "ai_reasoning": reasoning,
        "ai_processing_tier": tier,
        "ai_classification_status": status,
        "ai_classification_error": error,
        "sic_code": industry_code,
        "sic_description": industry_description,
    })

    std = mapping.standardization_result
    row.update({
        "normalized_payee_name": mapping.normalized_payee_name,
        "original_payee_name": mapping.payee_name,
        "standardization_steps": ", ".join(std.cleaning_steps),
        "standardization_steps_count": len(std.cleaning_steps),
        "data_quality_improved": "Yes" if std.changed else "No",
    })

    row.update(_duplicate_fields(std.original.strip(), duplicates_by_name or {}))

    row["processing_quality_score"] = get_quality_level(confidence)
    row["requires_review"] = "Yes" if confidence < REVIEW_CONFIDENCE_BELOW else "No"
    return row


def _duplicate_fields(name: str, duplicates_by_name: Mapping[str, ProcessedRecord]) -> dict:
    record = duplicates_by_name.get(name)
    if record is None:
        return dict(DUPLICATE_DEFAULTS)
    return {
        "is_potential_duplicate": "Yes" if record.is_potential_duplicate else "No",
        "duplicate_of_payee_name": record.duplicate_of_name or "",
        "duplicate_confidence_score": record.final_duplicate_score,
        "duplicate_detection_method": record.judgement_method,
        "duplicate_group_id": record.duplicate_group_id or "",
        "ai_duplicate_reasoning": record.ai_judgement_reasoning or "",
    }


def reconcile(
    classification_results: Sequence[ClassificationResult | None],
    payee_row_data: PayeeRowData,
    duplicate_result: DuplicateDetectionResult | None = None,
) -> list[MappedRow]:
    """
    Build exactly one MappedRow per original row.

    Args:
        classification_results: One result per unique payee, in unique order
        payee_row_data: Output of the row mapper
        duplicate_result: Optional duplicate detection output to enrich rows

    Returns:
        Mapped rows in original row order

    Raises:
        StructuralInvariantViolation: any count or index invariant failed
    """
    run = _Reconciliation(classification_results, payee_row_data, duplicate_result)
    for mapping in payee_row_data.row_mappings:
        run.process(mapping)
    return run.finish()


async def reconcile_async(
    classification_results: Sequence[ClassificationResult | None],
    payee_row_data: PayeeRowData,
    duplicate_result: DuplicateDetectionResult | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_token: CancellationToken | None = None,
) -> list[MappedRow]:
    """
    Chunked variant of reconcile that yields to the event loop between chunks.

    Progress callbacks are for responsiveness only. On cancellation the
    whole operation aborts and no partial output is returned.
    """
    run = _Reconciliation(classification_results, payee_row_data, duplicate_result)
    row_count = payee_row_data.row_count
    large = row_count > LARGE_INPUT_ROWS

    await process_in_chunks(
        payee_row_data.row_mappings,
        run.process,
        chunk_size=RECONCILE_CHUNK_SIZE_LARGE if large else RECONCILE_CHUNK_SIZE,
        delay=YIELD_DELAY_SECONDS_LARGE if row_count > YIELD_DELAY_LARGE_ROWS else YIELD_DELAY_SECONDS,
        on_progress=on_progress,
        cancel_token=cancel_token,
    )
    return run.finish()
