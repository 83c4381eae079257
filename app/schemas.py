"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class StoredReading(BaseModel):
    """A persisted reading as returned by the store and the API."""

    id: int = Field(..., ge=1, description="Store-assigned insertion sequence number.")
    temperature: float = Field(..., ge=-50, le=100, description="Temperature in degrees Celsius.")
    humidity: float = Field(..., ge=0, le=100, description="Relative humidity in percent.")
    created_at: datetime = Field(..., description="Moment the reading was recorded.")
    source: str

    @field_validator("created_at")
    @classmethod
    def _normalise_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class MetricStats(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = Field(default=None, description="Mean rounded to two decimals.")


class StatsWindow(BaseModel):
    """Aggregate statistics for readings recorded inside a time window."""

    count: int = Field(..., ge=0)
    temperature: MetricStats = Field(default_factory=MetricStats)
    humidity: MetricStats = Field(default_factory=MetricStats)
    window_start: datetime
    window_end: datetime


class IngestResponse(BaseModel):
    success: bool = True
    data: StoredReading
    message: str = "Reading stored"


class ReadingsResponse(BaseModel):
    success: bool = True
    count: int = Field(..., ge=0)
    data: List[StoredReading] = Field(default_factory=list)


class LatestReadingResponse(BaseModel):
    success: bool = True
    data: Optional[StoredReading] = None


class StatsResponse(BaseModel):
    success: bool = True
    data: StatsWindow


class ErrorResponse(BaseModel):
    error: str
    reason: Optional[str] = None
