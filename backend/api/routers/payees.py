"""
Payee API endpoints.

Standardization, row mapping, chunk planning, reconciliation of
caller-supplied classification results, and the full classify pipeline.
"""
from fastapi import APIRouter, Depends

from meridian.config import MeridianSettings
from meridian.duplicates import DuplicateDetectionConfig, detect_duplicates
from meridian.models import PayeeRowData
from meridian.pipeline import PayeePipeline
from meridian.rowmap import (
    collect_duplicate_candidates,
    create_row_mapping_async,
    reconcile_async,
    split_for_submission,
)
from meridian.standardizer import batch_standardize_async, compute_standardization_stats

from ..dependencies import get_app_settings, get_pipeline
from ..models.common import RowsRequest
from ..models.duplicate import DuplicateStatisticsResponse
from ..models.payee import (
    ChunkListResponse,
    ChunkRequest,
    ChunkSummary,
    ClassifyRequest,
    MappedRowsResponse,
    ReconcileRequest,
    RowMappingItem,
    RowMappingResponse,
    StandardizedName,
    StandardizeRequest,
    StandardizeResponse,
)

router = APIRouter(prefix="/payees", tags=["payees"])


def _mapped_rows_response(payee_row_data: PayeeRowData, rows, results, duplicate_result) -> MappedRowsResponse:
    return MappedRowsResponse(
        row_count=payee_row_data.row_count,
        unique_count=payee_row_data.unique_count,
        failed_classifications=sum(1 for r in results if r is None or r.failed),
        rows=list(rows),
        duplicate_statistics=(
            DuplicateStatisticsResponse.model_validate(duplicate_result.statistics)
            if duplicate_result else None
        ),
    )


@router.post("/standardize", response_model=StandardizeResponse)
async def standardize_names(request: StandardizeRequest):
    """Standardize a list of raw payee names and summarize the cleaning steps."""
    results = await batch_standardize_async(request.names)
    stats = compute_standardization_stats(results)
    return StandardizeResponse(
        results=[
            StandardizedName(
                original=r.original,
                normalized=r.normalized,
                cleaning_steps=list(r.cleaning_steps),
                changed=r.changed,
            )
            for r in results
        ],
        stats=stats.to_dict(),
    )


@router.post("/mapping", response_model=RowMappingResponse)
async def map_rows(request: RowsRequest):
    """Collapse rows onto unique standardized payees."""
    data = await create_row_mapping_async(request.rows, request.payee_column)
    return RowMappingResponse(
        row_count=data.row_count,
        unique_count=data.unique_count,
        unique_payee_names=list(data.unique_payee_names),
        unique_normalized_names=list(data.unique_normalized_names),
        row_mappings=[
            RowMappingItem(
                original_row_index=m.original_row_index,
                payee_name=m.payee_name,
                normalized_payee_name=m.normalized_payee_name,
                unique_payee_index=m.unique_payee_index,
                cleaning_steps=list(m.standardization_result.cleaning_steps),
            )
            for m in data.row_mappings
        ],
        standardization_stats=data.standardization_stats.to_dict(),
    )


@router.post("/chunks", response_model=ChunkListResponse)
async def plan_chunks(request: ChunkRequest):
    """Show how the unique payees would be split for oracle submission."""
    data = await create_row_mapping_async(request.rows, request.payee_column)
    chunks = split_for_submission(data, request.max_unique_per_chunk)
    return ChunkListResponse(
        unique_count=data.unique_count,
        chunks=[
            ChunkSummary(
                chunk_id=c.chunk_id,
                chunk_index=c.chunk_index,
                total_chunks=c.total_chunks,
                unique_offset=c.unique_offset,
                unique_payee_names=list(c.unique_payee_names),
                row_indices=sorted(c.original_file_data),
            )
            for c in chunks
        ],
    )


@router.post("/reconcile", response_model=MappedRowsResponse)
async def reconcile_rows(
    request: ReconcileRequest,
    settings: MeridianSettings = Depends(get_app_settings),
):
    """
    Put caller-supplied classification results back onto every row.

    classification_results must hold one entry per unique payee, in the
    order returned by /payees/mapping. Duplicate detection here is
    algorithmic only; ambiguous pairs are not sent to the AI judge.
    """
    data = await create_row_mapping_async(request.rows, request.payee_column)
    results = [r.to_domain() if r is not None else None for r in request.classification_results]

    duplicate_result = None
    if request.detect_duplicates:
        duplicate_result = await detect_duplicates(
            collect_duplicate_candidates(data),
            config=DuplicateDetectionConfig.from_settings(settings),
        )

    rows = await reconcile_async(results, data, duplicate_result=duplicate_result)
    return _mapped_rows_response(data, rows, results, duplicate_result)


@router.post("/classify", response_model=MappedRowsResponse)
async def classify_rows(
    request: ClassifyRequest,
    pipeline: PayeePipeline = Depends(get_pipeline),
):
    """Run the full pipeline: map, classify through the oracle, detect duplicates, reconcile."""
    result = await pipeline.run(
        request.rows,
        request.payee_column,
        detect_duplicates=request.detect_duplicates,
    )
    return _mapped_rows_response(
        result.payee_row_data,
        result.mapped_rows,
        result.classification_results,
        result.duplicate_result,
    )
