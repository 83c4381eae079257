"""Read path: recent readings, latest reading and windowed statistics."""

from __future__ import annotations

import logging
from datetime import datetime, time, tzinfo
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from starlette.concurrency import run_in_threadpool

from app.errors import StoreError, ValidationError, ValidationReason
from app.schemas import StatsWindow, StoredReading
from datastore.base import ReadingsStore
from services.aggregator import StatsAggregator
from services.ingestion import utc_now
from services.validator import parse_timestamp

logger = logging.getLogger(__name__)


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """Return the named IANA zone, or ``None`` for server-local time."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown stats timezone {name!r}.") from exc


class QueryService:
    def __init__(
        self,
        store: ReadingsStore,
        aggregator: StatsAggregator,
        default_limit: int = 100,
        max_limit: int = 1000,
        stats_timezone: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.aggregator = aggregator
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.stats_timezone = stats_timezone
        self._clock = clock

    def resolve_limit(self, requested: Any) -> int:
        """Coerce a caller-supplied limit; anything unusable yields the default."""
        try:
            limit = int(str(requested).strip()) if requested is not None else 0
        except ValueError:
            limit = 0
        if limit <= 0:
            limit = self.default_limit
        return min(limit, self.max_limit)

    async def recent(self, requested_limit: Any = None) -> list[StoredReading]:
        """Most recent readings, returned oldest first for charting."""
        limit = self.resolve_limit(requested_limit)
        newest_first = await self._call_store(self.store.query_recent, limit, self.max_limit)
        logger.debug("Fetched recent readings", extra={"count": len(newest_first), "limit": limit})
        return list(reversed(newest_first))

    async def latest(self) -> Optional[StoredReading]:
        return await self._call_store(self.store.query_latest)

    def start_of_day(self, now: datetime) -> datetime:
        """Midnight of ``now``'s calendar day in the stats timezone."""
        local_now = now.astimezone(self.stats_timezone)
        midnight = datetime.combine(local_now.date(), time.min)
        if self.stats_timezone is None:
            return midnight.astimezone()
        return midnight.replace(tzinfo=self.stats_timezone)

    async def stats_today(self) -> StatsWindow:
        now = self._clock()
        return await self.stats_between(self.start_of_day(now), now)

    async def stats_window(self, start: Optional[str] = None, end: Optional[str] = None) -> StatsWindow:
        """Statistics for an explicit window; omitted bounds default to today."""
        now = self._clock()
        window_end = self._parse_bound("end", end) if end else now
        window_start = self._parse_bound("start", start) if start else self.start_of_day(now)
        if window_start > window_end:
            raise ValidationError(
                ValidationReason.invalid_window, "start must not be later than end"
            )
        return await self.stats_between(window_start, window_end)

    async def stats_between(self, window_start: datetime, window_end: datetime) -> StatsWindow:
        readings = await self._call_store(self.store.query_range, window_start, window_end)
        stats = self.aggregator.aggregate(readings, window_start, window_end)
        logger.debug("Computed window statistics", extra={"count": stats.count})
        return stats

    @staticmethod
    def _parse_bound(name: str, value: str) -> datetime:
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValidationError(
                ValidationReason.invalid_window, f"{name} must be an ISO-8601 timestamp"
            )
        return parsed

    @staticmethod
    async def _call_store(method: Callable[..., Any], *args: Any) -> Any:
        try:
            return await run_in_threadpool(method, *args)
        except StoreError:
            logger.exception("Failed to query readings", extra={"reason": "store_failure"})
            raise
