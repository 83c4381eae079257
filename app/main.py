from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import client_address, router
from app.errors import (
    NotFoundError,
    RateLimitError,
    ServiceError,
    StoreError,
)
from datastore.base import ReadingsStore
from datastore.mock_readings import build_default_table
from logging_config import configure_logging
from services.aggregator import StatsAggregator
from services.guard import CredentialGuard
from services.ingestion import IngestionService, utc_now
from services.query import QueryService, resolve_timezone
from services.rate_limiter import SlidingWindowRateLimiter
from services.validator import ReadingValidator
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
}


def _error_response(
    status_code: int, message: str, reason: Optional[str] = None, headers: Optional[dict] = None
) -> JSONResponse:
    content = {"error": message}
    if reason:
        content["reason"] = reason
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _rate_limit_response(exc: RateLimitError) -> JSONResponse:
    return _error_response(
        exc.status_code,
        exc.response_message,
        exc.reason,
        headers={"Retry-After": str(max(1, math.ceil(exc.retry_after)))},
    )


async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    if isinstance(exc, RateLimitError):
        logger.warning(
            "Rate limit exceeded",
            extra={"client": client_address(request), "path": request.url.path},
        )
        return _rate_limit_response(exc)
    if isinstance(exc, StoreError):
        logger.error(
            "Store failure while handling request: %s",
            exc,
            extra={"path": request.url.path, "reason": exc.reason},
        )
    return _error_response(exc.status_code, exc.response_message, exc.reason)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        not_found = NotFoundError()
        return _error_response(not_found.status_code, not_found.response_message, not_found.reason)
    return _error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return _error_response(status.HTTP_400_BAD_REQUEST, messages or "Invalid request")


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, ServiceError.public_message, ServiceError.reason
    )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ReadingsStore] = None,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    store = store if store is not None else build_default_table()
    guard = CredentialGuard(settings.webhook_secret)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Sensor readings service starting (webhook secret configured: %s)",
            guard.configured,
        )
        try:
            yield
        finally:
            logger.info("Sensor readings service stopped")

    app = FastAPI(
        title="Sensor Readings Service",
        description="Ingests pushed temperature/humidity readings and serves time series and daily statistics.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.ingestion_service = IngestionService(
        guard=guard,
        validator=ReadingValidator(source=settings.reading_source),
        store=store,
        clock=clock,
    )
    app.state.query_service = QueryService(
        store=store,
        aggregator=StatsAggregator(),
        default_limit=settings.default_limit,
        max_limit=settings.max_limit,
        stats_timezone=resolve_timezone(settings.stats_timezone),
        clock=clock,
    )
    app.state.global_rate_limiter = SlidingWindowRateLimiter(
        max_requests=settings.global_rate_limit,
        window_seconds=settings.global_rate_window_seconds,
    )
    app.state.ingest_rate_limiter = SlidingWindowRateLimiter(
        max_requests=settings.ingest_rate_limit,
        window_seconds=settings.ingest_rate_window_seconds,
        message="Webhook rate limit exceeded",
    )

    @app.middleware("http")
    async def enforce_global_rate_limit(request: Request, call_next):
        try:
            app.state.global_rate_limiter.hit(client_address(request))
        except RateLimitError as exc:
            logger.warning(
                "Global rate limit exceeded",
                extra={"client": client_address(request), "path": request.url.path},
            )
            return _rate_limit_response(exc)
        return await call_next(request)

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.allowed_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ServiceError, handle_service_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router)
    return app
