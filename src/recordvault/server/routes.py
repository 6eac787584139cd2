"""API route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from ..errors import RecordVaultError
from ..interfaces import WriteRequest, WriteStatus
from ..system import RecordSystem
from .models import (
    WriteRecordRequest,
    WriteAckResponse,
    WriteStatusValue,
    RecordResponse,
    ErrorResponse,
    LivenessResponse,
    HealthResponse,
    StatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["records"])

# Error kind -> HTTP status
ERROR_STATUS = {
    "validation": 422,
    "conflict": 409,
    "unavailable": 503,
    "deadline_exceeded": 504,
}


def get_record_system(request: Request) -> RecordSystem:
    """Dependency injection for the record system.

    The system is attached to ``app.state`` by the lifespan.
    """
    system = getattr(request.app.state, "system", None)
    if system is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return system


def _error_response(error: RecordVaultError) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS.get(error.kind, 500),
        content=error.to_dict(),
    )


@router.post(
    "/records",
    response_model=WriteAckResponse,
    status_code=201,
    responses={200: {"model": WriteAckResponse}, 409: {"model": ErrorResponse},
               422: {"model": ErrorResponse}, 503: {"model": ErrorResponse},
               504: {"model": ErrorResponse}},
)
async def write_record(
    body: WriteRecordRequest,
    response: Response,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    system: RecordSystem = Depends(get_record_system),
):
    """Store a new record (201), or acknowledge a duplicate (200)."""
    try:
        ack = await system.submit(WriteRequest(
            payload=body.payload,
            schema_version=body.schema_version,
            idempotency_key=body.idempotency_key or idempotency_key,
            record_id=body.id,
        ))
    except RecordVaultError as e:
        return _error_response(e)

    if ack.status == WriteStatus.DUPLICATE:
        response.status_code = 200
    return WriteAckResponse(id=ack.id, status=WriteStatusValue(ack.status.value))


@router.get(
    "/records/{record_id}",
    response_model=RecordResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse},
               504: {"model": ErrorResponse}},
)
async def read_record(
    record_id: str,
    system: RecordSystem = Depends(get_record_system),
):
    """Get a record by id."""
    try:
        record = await system.read(record_id)
    except RecordVaultError as e:
        return _error_response(e)

    if record is None:
        return JSONResponse(
            status_code=404,
            content={"kind": "not_found", "detail": f"Record {record_id} not found"},
        )
    return RecordResponse(
        id=record.id,
        payload=record.payload,
        created_at=record.created_at,
        schema_version=record.schema_version,
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness(
    response: Response,
    system: RecordSystem = Depends(get_record_system),
) -> LivenessResponse:
    """Cheap liveness probe: can the store be reached."""
    if await system.liveness():
        return LivenessResponse(status="ok")
    response.status_code = 503
    return LivenessResponse(status="unavailable")


@router.get("/health", response_model=HealthResponse)
async def health(
    system: RecordSystem = Depends(get_record_system),
) -> HealthResponse:
    """Detailed provider health."""
    return HealthResponse(**await system.health())


@router.get("/stats", response_model=StatsResponse)
async def stats(
    system: RecordSystem = Depends(get_record_system),
):
    """Record, routing and cache statistics."""
    try:
        return StatsResponse(**await system.stats())
    except RecordVaultError as e:
        return _error_response(e)
