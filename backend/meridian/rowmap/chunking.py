"""
Chunk Splitter: keeps each oracle submission under the per-job cap.

Chunking is a capacity accommodation only. Chunk results are merged back
in chunk order, which restores the unique-payee indexing the reconciler
expects.
"""

from collections.abc import Sequence
from typing import Any

import structlog

from ..config import MAX_PAYEES_PER_CHUNK, ORACLE_HARD_CAP
from ..errors import InputValidationError, StructuralInvariantViolation
from ..models import Chunk, ClassificationResult, PayeeRowData

logger = structlog.get_logger("meridian.rowmap.chunking")


def split_for_submission(
    payee_row_data: PayeeRowData,
    max_unique_per_chunk: int = MAX_PAYEES_PER_CHUNK,
) -> list[Chunk]:
    """
    Partition the unique payee list into contiguous oracle-sized chunks.

    Each chunk carries only the row mappings whose unique index falls in
    its slice, and only the original rows those mappings reference.
    """
    if max_unique_per_chunk <= 0 or max_unique_per_chunk > ORACLE_HARD_CAP:
        raise InputValidationError(
            f"Chunk size must be between 1 and {ORACLE_HARD_CAP}",
            details={"max_unique_per_chunk": max_unique_per_chunk},
        )

    names = payee_row_data.unique_payee_names
    total = len(names)

    if total <= max_unique_per_chunk:
        return [Chunk(
            chunk_index=0,
            total_chunks=1,
            unique_payee_names=names,
            unique_offset=0,
            row_mappings=payee_row_data.row_mappings,
            original_file_data=dict(enumerate(payee_row_data.original_file_data)),
        )]

    total_chunks = (total + max_unique_per_chunk - 1) // max_unique_per_chunk

    # Bucket mappings by chunk in one pass
    buckets: list[list] = [[] for _ in range(total_chunks)]
    for mapping in payee_row_data.row_mappings:
        buckets[mapping.unique_payee_index // max_unique_per_chunk].append(mapping)

    chunks = []
    for chunk_index in range(total_chunks):
        start = chunk_index * max_unique_per_chunk
        end = min(start + max_unique_per_chunk, total)
        mappings = tuple(buckets[chunk_index])
        rows = {
            m.original_row_index: payee_row_data.original_file_data[m.original_row_index]
            for m in mappings
        }
        chunks.append(Chunk(
            chunk_index=chunk_index,
            total_chunks=total_chunks,
            unique_payee_names=names[start:end],
            unique_offset=start,
            row_mappings=mappings,
            original_file_data=rows,
        ))

    logger.info(
        "unique_payees_chunked",
        unique_payees=total,
        chunks=total_chunks,
        max_unique_per_chunk=max_unique_per_chunk,
    )
    return chunks


def merge_chunk_results(
    chunks: Sequence[Chunk],
    per_chunk_results: Sequence[Sequence[ClassificationResult]],
) -> list[ClassificationResult]:
    """Concatenate chunk results in chunk order, checking each chunk's count."""
    if len(chunks) != len(per_chunk_results):
        raise StructuralInvariantViolation(
            "Chunk result count mismatch", expected=len(chunks), actual=len(per_chunk_results),
        )

    merged: list[ClassificationResult] = []
    for chunk, results in sorted(zip(chunks, per_chunk_results), key=lambda pair: pair[0].chunk_index):
        if len(results) != chunk.size:
            raise StructuralInvariantViolation(
                f"Classification results mismatch in {chunk.chunk_id}",
                expected=chunk.size,
                actual=len(results),
            )
        if chunk.unique_offset != len(merged):
            raise StructuralInvariantViolation(
                f"Chunk offset gap at {chunk.chunk_id}",
                expected=len(merged),
                actual=chunk.unique_offset,
            )
        merged.extend(results)
    return merged


def calculate_chunked_progress(progress_by_chunk: Sequence[dict[str, Any]]) -> dict:
    """
    Aggregate per-chunk progress into one overall figure.

    Args:
        progress_by_chunk: [{"chunk_id", "status", "percent"}, ...] where status
            is one of pending, running, completed, failed

    Returns:
        {"percent", "completed_chunks", "failed_chunks", "total_chunks", "status_text"}
    """
    total = len(progress_by_chunk)
    if total == 0:
        return {
            "percent": 0.0,
            "completed_chunks": 0,
            "failed_chunks": 0,
            "total_chunks": 0,
            "status_text": "No chunks",
        }

    completed = sum(1 for p in progress_by_chunk if p.get("status") == "completed")
    failed = sum(1 for p in progress_by_chunk if p.get("status") == "failed")
    percent_sum = 0.0
    for p in progress_by_chunk:
        if p.get("status") in ("completed", "failed"):
            percent_sum += 100.0
        else:
            percent_sum += min(max(float(p.get("percent", 0.0)), 0.0), 100.0)
    percent = round(percent_sum / total, 1)

    if completed + failed == total:
        status_text = f"All {total} chunks finished"
        if failed:
            status_text += f" ({failed} failed)"
    else:
        status_text = f"Processing chunk {completed + failed + 1} of {total}"

    return {
        "percent": percent,
        "completed_chunks": completed,
        "failed_chunks": failed,
        "total_chunks": total,
        "status_text": status_text,
    }
