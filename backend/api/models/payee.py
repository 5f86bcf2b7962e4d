"""Pydantic models for payee standardization, mapping, chunking and reconciliation."""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from meridian.config import MAX_PAYEES_PER_CHUNK, ORACLE_HARD_CAP
from meridian.models import ClassificationResult

from .common import RowsRequest, TimestampedResponse
from .duplicate import DuplicateStatisticsResponse


class StandardizeRequest(BaseModel):
    names: List[Optional[str]] = Field(..., description="Raw payee names; null entries become UNKNOWN")


class StandardizedName(BaseModel):
    original: str
    normalized: str
    cleaning_steps: List[str]
    changed: bool


class StepCount(BaseModel):
    step: str
    count: int


class StandardizationStatsResponse(BaseModel):
    total_processed: int
    changes_detected: int
    average_steps_per_name: float
    most_common_steps: List[StepCount]


class StandardizeResponse(TimestampedResponse):
    results: List[StandardizedName]
    stats: StandardizationStatsResponse


class RowMappingItem(BaseModel):
    original_row_index: int
    payee_name: str
    normalized_payee_name: str
    unique_payee_index: int
    cleaning_steps: List[str]


class RowMappingResponse(TimestampedResponse):
    """Unique payees and the row-to-unique-index map for one upload."""

    row_count: int = Field(..., description="Number of original rows")
    unique_count: int = Field(..., description="Number of unique standardized payees")
    unique_payee_names: List[str]
    unique_normalized_names: List[str]
    row_mappings: List[RowMappingItem]
    standardization_stats: StandardizationStatsResponse


class ChunkRequest(RowsRequest):
    max_unique_per_chunk: int = Field(
        MAX_PAYEES_PER_CHUNK, ge=1, le=ORACLE_HARD_CAP,
        description="Upper bound on unique payees per oracle submission",
    )


class ChunkSummary(BaseModel):
    chunk_id: str
    chunk_index: int
    total_chunks: int
    unique_offset: int
    unique_payee_names: List[str]
    row_indices: List[int]


class ChunkListResponse(TimestampedResponse):
    unique_count: int
    chunks: List[ChunkSummary]


class ClassificationResultModel(BaseModel):
    """One oracle verdict, as submitted by a caller that ran its own oracle."""

    model_config = ConfigDict(from_attributes=True)

    payee_name: str
    classification: Literal["Business", "Individual"] = "Individual"
    confidence: float = Field(0, ge=0, le=100)
    reasoning: str = ""
    industry_code: Optional[str] = None
    industry_description: Optional[str] = None
    status: Literal["success", "failed"] = "success"
    error: Optional[str] = None
    processing_tier: str = "AI-Powered"

    def to_domain(self) -> ClassificationResult:
        return ClassificationResult(**self.model_dump())


class ReconcileRequest(RowsRequest):
    classification_results: List[Optional[ClassificationResultModel]] = Field(
        ..., description="One result per unique payee, in unique-payee order; null means missing",
    )
    detect_duplicates: bool = Field(
        False, description="Run algorithmic duplicate detection and add duplicate columns",
    )


class MappedRowsResponse(TimestampedResponse):
    """Every original row with classification, standardization and duplicate columns."""

    row_count: int
    unique_count: int
    failed_classifications: int
    rows: List[Dict[str, Any]]
    duplicate_statistics: Optional[DuplicateStatisticsResponse] = None


class ClassifyRequest(RowsRequest):
    detect_duplicates: bool = Field(True, description="Also run duplicate detection over the payees")
