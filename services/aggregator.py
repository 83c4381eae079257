"""Aggregation logic for stored readings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from app.schemas import MetricStats, StatsWindow, StoredReading

_AVERAGE_QUANTUM = Decimal("0.01")


@dataclass
class _RunningMetric:
    total: float = 0.0
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def add(self, value: float) -> None:
        self.total += value
        if self.minimum is None or value < self.minimum:
            self.minimum = value
        if self.maximum is None or value > self.maximum:
            self.maximum = value

    def finish(self, count: int) -> MetricStats:
        if not count:
            return MetricStats()
        return MetricStats(
            min=self.minimum,
            max=self.maximum,
            avg=round_average(self.total / count),
        )


def round_average(value: float) -> float:
    """Round half-up to two decimal places for presentation."""
    return float(Decimal(repr(value)).quantize(_AVERAGE_QUANTUM, rounding=ROUND_HALF_UP))


class StatsAggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def aggregate(
        self,
        readings: Iterable[StoredReading],
        window_start: datetime,
        window_end: datetime,
    ) -> StatsWindow:
        count = 0
        temperature = _RunningMetric()
        humidity = _RunningMetric()

        for reading in readings:
            if not window_start <= reading.created_at <= window_end:
                continue
            count += 1
            temperature.add(reading.temperature)
            humidity.add(reading.humidity)

        return StatsWindow(
            count=count,
            temperature=temperature.finish(count),
            humidity=humidity.finish(count),
            window_start=window_start,
            window_end=window_end,
        )
