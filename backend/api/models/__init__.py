# Pydantic models for API request/response
from .common import ErrorResponse, RowsRequest, TimestampedResponse
from .duplicate import (
    DuplicateDetectRequest,
    DuplicateDetectResponse,
    DuplicateStatisticsResponse,
)
from .payee import (
    ChunkListResponse,
    ChunkRequest,
    ClassificationResultModel,
    ClassifyRequest,
    MappedRowsResponse,
    ReconcileRequest,
    RowMappingResponse,
    StandardizeRequest,
    StandardizeResponse,
)

__all__ = [
    "ErrorResponse",
    "RowsRequest",
    "TimestampedResponse",
    "DuplicateDetectRequest",
    "DuplicateDetectResponse",
    "DuplicateStatisticsResponse",
    "ChunkListResponse",
    "ChunkRequest",
    "ClassificationResultModel",
    "ClassifyRequest",
    "MappedRowsResponse",
    "ReconcileRequest",
    "RowMappingResponse",
    "StandardizeRequest",
    "StandardizeResponse",
]
