from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from app.schemas import StoredReading
from models.records import Reading


class ReadingsStore(Protocol):
    """Append-only readings persistence ordered by recording time.

    Implementations raise ``app.errors.StoreError`` on any I/O or constraint
    failure instead of dropping the write.
    """

    def append(self, reading: Reading) -> StoredReading: ...

    def query_recent(self, limit: int, max_limit: int) -> list[StoredReading]:
        """Newest first, at most ``min(limit, max_limit)`` rows."""
        ...

    def query_latest(self) -> Optional[StoredReading]: ...

    def query_range(self, start: datetime, end: datetime) -> list[StoredReading]:
        """Oldest first, ``start <= created_at <= end``."""
        ...

    def ping(self) -> None: ...
