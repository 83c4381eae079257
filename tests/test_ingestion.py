from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Optional

import pytest

from app.errors import AuthorizationError, StoreError, ValidationError, ValidationReason
from app.schemas import StoredReading
from datastore.mock_readings import MockReadingsTable
from models.records import Reading
from services.guard import CredentialGuard
from services.ingestion import IngestionService
from services.validator import ReadingValidator

NOW = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


class FailingStore(MockReadingsTable):
    def __init__(self) -> None:
        super().__init__(name="failing")
        self.attempts = 0

    def append(self, reading: Reading) -> StoredReading:
        self.attempts += 1
        raise StoreError("connection refused")


def _service(store: Optional[MockReadingsTable] = None) -> IngestionService:
    return IngestionService(
        guard=CredentialGuard("secret"),
        validator=ReadingValidator(source="thingspeak"),
        store=store if store is not None else MockReadingsTable(name="readings"),
        clock=lambda: NOW,
    )


def test_accepted_push_is_stored_once() -> None:
    service = _service()

    stored = asyncio.run(service.ingest("secret", {"temperature": 23.5, "humidity": 61}))

    assert stored.temperature == 23.5
    assert stored.humidity == 61.0
    assert stored.created_at == NOW
    assert service.store.scan() == [stored]


@pytest.mark.parametrize(
    "payload",
    [{"temperature": 23.5, "humidity": 61}, {"temperature": 999}, None],
)
def test_bad_secret_is_rejected_before_validation(payload) -> None:
    service = _service()

    with pytest.raises(AuthorizationError):
        asyncio.run(service.ingest("wrong", payload))

    assert service.store.scan() == []


def test_invalid_reading_leaves_store_unchanged() -> None:
    service = _service()

    with pytest.raises(ValidationError) as excinfo:
        asyncio.run(service.ingest("secret", {"temperature": 150, "humidity": 50}))

    assert excinfo.value.validation_reason is ValidationReason.out_of_range
    assert service.store.scan() == []


def test_store_failure_is_surfaced_without_retry() -> None:
    store = FailingStore()
    service = _service(store)

    with pytest.raises(StoreError):
        asyncio.run(service.ingest("secret", {"temperature": 20, "humidity": 50}))

    assert store.attempts == 1


def test_repeated_pushes_create_repeated_rows() -> None:
    service = _service()
    payload = {"temperature": 20, "humidity": 50, "created_at": "2024-06-01T09:00:00Z"}

    asyncio.run(service.ingest("secret", payload))
    asyncio.run(service.ingest("secret", payload))

    assert len(service.store.scan()) == 2
