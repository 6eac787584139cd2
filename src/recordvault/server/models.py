"""Pydantic models for HTTP API request/response."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class WriteStatusValue(str, Enum):
    """Write acknowledgment statuses."""
    CREATED = "created"
    DUPLICATE = "duplicate"


# =============================================================================
# Request Models
# =============================================================================

class WriteRecordRequest(BaseModel):
    """Request to store a new record."""
    payload: Any = Field(..., description="Record body, a JSON object")
    schema_version: int = Field(..., ge=1, description="Schema the payload conforms to")
    idempotency_key: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=256,
        description="Token collapsing retries of the same write (also accepted as Idempotency-Key header)"
    )
    id: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=256,
        description="Caller-assigned record id (server-assigned when omitted)"
    )


# =============================================================================
# Response Models
# =============================================================================

class WriteAckResponse(BaseModel):
    """Acknowledgment of a successful write."""
    id: str
    status: WriteStatusValue


class RecordResponse(BaseModel):
    """A stored record."""
    id: str
    payload: dict[str, Any]
    created_at: datetime
    schema_version: int

    model_config = {"from_attributes": True}


class FieldErrorResponse(BaseModel):
    path: str
    message: str


class ErrorResponse(BaseModel):
    """Typed error: the kind drives the status code."""
    kind: str
    detail: str
    errors: Optional[list[FieldErrorResponse]] = None


class LivenessResponse(BaseModel):
    status: str


class ProviderHealthResponse(BaseModel):
    status: str
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Detailed health of the core."""
    status: str
    instance_id: Optional[str] = None
    providers: dict[str, ProviderHealthResponse] = Field(default_factory=dict)


class StatsResponse(BaseModel):
    """Record and cache statistics."""
    instance_id: str
    total_records: int
    mapping_version: int
    read_versions: list[int]
    schema_versions: list[int]
    pending_writes: int
    cache: Optional[dict[str, Any]] = None
