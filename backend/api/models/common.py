"""Common Pydantic models shared by every endpoint."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TimestampedResponse(BaseModel):
    """Base class for responses with timestamps."""

    generated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When this response was generated"
    )


class RowsRequest(BaseModel):
    """A table of records plus the name of its payee column."""

    rows: List[Dict[str, Any]] = Field(..., description="Original records, opaque beyond the payee column")
    payee_column: str = Field(..., description="Column holding the free-text payee name")


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Envelope returned by every error handler."""

    error: ErrorBody
