"""HTTP route definitions for the service."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.errors import StoreError
from app.schemas import (
    ErrorResponse,
    IngestResponse,
    LatestReadingResponse,
    ReadingsResponse,
    StatsResponse,
)
from datastore.base import ReadingsStore
from services.guard import SECRET_HEADER
from services.ingestion import IngestionService
from services.query import QueryService
from services.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

SERVICE_NAME = "Sensor Readings Service"

router = APIRouter()


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def get_query_service(request: Request) -> QueryService:
    return request.app.state.query_service


def get_store(request: Request) -> ReadingsStore:
    return request.app.state.store


def enforce_ingest_rate_limit(request: Request) -> None:
    limiter: SlidingWindowRateLimiter = request.app.state.ingest_rate_limiter
    limiter.hit(client_address(request))


async def _read_json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (ValueError, RecursionError):
        return None


@router.get(
    "/",
    summary="Service banner.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {
        "status": "OK",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
    responses={503: {"model": ErrorResponse}},
)
async def healthcheck(store: ReadingsStore = Depends(get_store)):
    try:
        await run_in_threadpool(store.ping)
    except StoreError as exc:
        logger.error("Health check failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "detail": StoreError.public_message},
        )
    return {"status": "ok"}


@router.post(
    "/webhook/thingspeak",
    status_code=status.HTTP_201_CREATED,
    response_model=IngestResponse,
    summary="Accept a reading pushed by the sensor.",
    dependencies=[Depends(enforce_ingest_rate_limit)],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def ingest_reading(
    request: Request,
    secret: Optional[str] = Header(default=None, alias=SECRET_HEADER),
    service: IngestionService = Depends(get_ingestion_service),
) -> IngestResponse:
    payload = await _read_json_body(request)
    stored = await service.ingest(secret, payload, client=client_address(request))
    return IngestResponse(data=stored)


@router.get(
    "/api/readings",
    response_model=ReadingsResponse,
    summary="Most recent readings, oldest first.",
)
async def list_recent_readings(
    limit: Optional[str] = Query(default=None, description="Number of readings to return."),
    service: QueryService = Depends(get_query_service),
) -> ReadingsResponse:
    readings = await service.recent(limit)
    return ReadingsResponse(count=len(readings), data=readings)


@router.get(
    "/api/readings/latest",
    response_model=LatestReadingResponse,
    summary="The single most recent reading, or null when nothing is stored.",
)
async def latest_reading(
    service: QueryService = Depends(get_query_service),
) -> LatestReadingResponse:
    return LatestReadingResponse(data=await service.latest())


@router.get(
    "/api/stats/today",
    response_model=StatsResponse,
    summary="Statistics for readings recorded since local midnight.",
)
async def stats_today(
    service: QueryService = Depends(get_query_service),
) -> StatsResponse:
    return StatsResponse(data=await service.stats_today())


@router.get(
    "/api/stats",
    response_model=StatsResponse,
    summary="Statistics for readings recorded inside an explicit window.",
    responses={400: {"model": ErrorResponse}},
)
async def stats_window(
    start: Optional[str] = Query(default=None, description="ISO-8601 window start."),
    end: Optional[str] = Query(default=None, description="ISO-8601 window end."),
    service: QueryService = Depends(get_query_service),
) -> StatsResponse:
    return StatsResponse(data=await service.stats_window(start, end))
