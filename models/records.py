"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Reading:
    """A validated temperature/humidity observation awaiting persistence."""

    temperature: float
    humidity: float
    recorded_at: datetime
    source: str
