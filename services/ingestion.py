"""Orchestration of the write path: guard, validator, store."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from starlette.concurrency import run_in_threadpool

from app.errors import AuthorizationError, StoreError, ValidationError
from app.schemas import StoredReading
from datastore.base import ReadingsStore
from services.guard import CredentialGuard, GuardDecision
from services.validator import ReadingValidator

logger = logging.getLogger(__name__)


class IngestionState(str, Enum):
    """Lifecycle of a single pushed reading."""

    received = "received"
    auth_checked = "auth_checked"
    validated = "validated"
    persisted = "persisted"
    acknowledged = "acknowledged"
    rejected = "rejected"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IngestionService:
    """Accepts pushed readings and writes them to the store.

    Pushes are not deduplicated: every accepted push becomes a new row.
    """

    def __init__(
        self,
        guard: CredentialGuard,
        validator: ReadingValidator,
        store: ReadingsStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.guard = guard
        self.validator = validator
        self.store = store
        self._clock = clock

    async def ingest(
        self,
        secret: Optional[str],
        payload: Any,
        client: Optional[str] = None,
    ) -> StoredReading:
        received_at = self._clock()
        self._transition(IngestionState.received, client)

        if self.guard.check(secret, client=client) is not GuardDecision.authorized:
            self._transition(IngestionState.rejected, client, reason="unauthorized")
            raise AuthorizationError()
        self._transition(IngestionState.auth_checked, client)

        try:
            reading = self.validator.validate(payload, received_at)
        except ValidationError as exc:
            self._transition(IngestionState.rejected, client, reason=exc.reason)
            logger.warning(
                "Rejected invalid reading: %s",
                exc.message,
                extra={"client": client, "reason": exc.reason},
            )
            raise
        self._transition(IngestionState.validated, client)

        try:
            stored = await run_in_threadpool(self.store.append, reading)
        except StoreError:
            self._transition(IngestionState.rejected, client, reason="store_failure")
            logger.exception(
                "Failed to store reading",
                extra={"client": client, "reason": "store_failure"},
            )
            raise
        self._transition(IngestionState.persisted, client)

        logger.info(
            "Stored reading",
            extra={
                "client": client,
                "reading_id": stored.id,
                "temperature": stored.temperature,
                "humidity": stored.humidity,
            },
        )
        self._transition(IngestionState.acknowledged, client)
        return stored

    @staticmethod
    def _transition(
        state: IngestionState, client: Optional[str], reason: Optional[str] = None
    ) -> None:
        logger.debug(
            "Ingestion state -> %s", state.value, extra={"client": client, "reason": reason}
        )
