"""Pydantic models for duplicate detection endpoints."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import TimestampedResponse


class DuplicateRecordModel(BaseModel):
    id: str = Field(..., description="Caller-assigned record id, unique per request")
    name: str = Field(..., description="Raw payee name")


class DuplicateDetectRequest(BaseModel):
    records: List[DuplicateRecordModel]
    high_threshold: Optional[float] = Field(None, ge=0, le=100, description="Score at or above which a pair is a duplicate")
    low_threshold: Optional[float] = Field(None, ge=0, le=100, description="Score at or below which a pair is dropped")
    enable_ai_judgment: bool = Field(True, description="Ask the AI judge about ambiguous pairs when configured")


class ProcessedRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    is_potential_duplicate: bool
    duplicate_of_id: Optional[str] = None
    duplicate_of_name: Optional[str] = None
    final_duplicate_score: float
    judgement_method: str
    ai_judgement_is_duplicate: Optional[bool] = None
    ai_judgement_reasoning: Optional[str] = None
    duplicate_group_id: str = ""


class GroupMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    judgement_method: str
    score: float


class DuplicateGroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_id: str
    canonical_id: str
    canonical_name: str
    members: List[GroupMemberResponse]
    average_score: float


class DuplicateStatisticsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_processed: int
    duplicates_found: int
    high_confidence_matches: int
    low_confidence_matches: int
    ai_judgments_made: int
    ai_judgment_failures: int
    pairs_evaluated: int
    processing_time_ms: float


class DuplicateDetectResponse(TimestampedResponse):
    processed_records: List[ProcessedRecordResponse]
    duplicate_groups: List[DuplicateGroupResponse]
    pairs: List[Dict[str, Any]]
    statistics: DuplicateStatisticsResponse
