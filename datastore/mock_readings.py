from __future__ import annotations

import json
import logging
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import List, Optional

from pydantic import ValidationError as SchemaValidationError

from app.errors import StoreError
from app.schemas import StoredReading
from models.records import Reading
from settings import get_settings

logger = logging.getLogger(__name__)


def _sort_key(item: StoredReading) -> tuple[datetime, int]:
    return (item.created_at, item.id)


class MockReadingsTable:
    """In-memory readings table with optional JSON Lines persistence."""

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._items: List[StoredReading] = []
        self._next_id = 1
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def append(self, reading: Reading) -> StoredReading:
        with self._lock:
            try:
                item = StoredReading(
                    id=self._next_id,
                    temperature=reading.temperature,
                    humidity=reading.humidity,
                    created_at=reading.recorded_at,
                    source=reading.source,
                )
            except SchemaValidationError as exc:
                raise StoreError(f"Reading rejected by table {self.name!r}: {exc}") from exc
            self._persist(item)
            self._items.append(item)
            self._next_id += 1
            return item.model_copy(deep=True)

    def query_recent(self, limit: int, max_limit: int) -> list[StoredReading]:
        effective = max(0, min(limit, max_limit))
        if effective == 0:
            return []
        with self._lock:
            ordered = sorted(self._items, key=_sort_key, reverse=True)
            return [item.model_copy(deep=True) for item in ordered[:effective]]

    def query_latest(self) -> Optional[StoredReading]:
        with self._lock:
            if not self._items:
                return None
            return max(self._items, key=_sort_key).model_copy(deep=True)

    def query_range(self, start: datetime, end: datetime) -> list[StoredReading]:
        with self._lock:
            selected = [item for item in self._items if start <= item.created_at <= end]
            return [item.model_copy(deep=True) for item in sorted(selected, key=_sort_key)]

    def scan(self) -> list[StoredReading]:
        """Return deep copies of all stored readings in insertion order."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items]

    def ping(self) -> None:
        if not self.persistence_path:
            return
        if not self.persistence_path.parent.is_dir():
            raise StoreError(
                f"Persistence directory for table {self.name!r} is missing: "
                f"{self.persistence_path.parent}"
            )

    def _persist(self, item: StoredReading) -> None:
        if not self.persistence_path:
            return
        line = json.dumps(item.model_dump(mode="json"), sort_keys=True)
        try:
            with self.persistence_path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            raise StoreError(
                f"Failed to persist reading to {self.persistence_path}: {exc}"
            ) from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            lines = self.persistence_path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise StoreError(f"Failed to load table {self.name!r}: {exc}") from exc

        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                continue
            try:
                item = StoredReading.model_validate(json.loads(line))
            except (json.JSONDecodeError, SchemaValidationError):
                logger.warning(
                    "Skipping malformed persisted reading on line %s of %s",
                    line_number,
                    self.persistence_path,
                )
                continue
            self._items.append(item)
            self._next_id = max(self._next_id, item.id + 1)


@lru_cache
def build_default_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> MockReadingsTable:
    settings = get_settings()
    table_name = settings.table_name if name is None else name
    table_path = settings.table_persistence_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return MockReadingsTable(name=table_name, persistence_path=persistence)
