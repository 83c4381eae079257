"""Shared-secret authorization for the ingestion path."""

from __future__ import annotations

import hmac
import logging
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Webhook-Secret"


class GuardDecision(str, Enum):
    authorized = "authorized"
    unauthorized = "unauthorized"


class CredentialGuard:
    """Compares the presented secret token against the configured one."""

    def __init__(self, expected_secret: Optional[str]) -> None:
        self._expected = (expected_secret or "").encode("utf-8")

    @property
    def configured(self) -> bool:
        return bool(self._expected)

    def check(self, presented: Optional[str], client: Optional[str] = None) -> GuardDecision:
        if self._expected and presented and hmac.compare_digest(
            presented.encode("utf-8"), self._expected
        ):
            return GuardDecision.authorized

        reason = "missing secret" if not presented else "secret mismatch"
        if not self._expected:
            reason = "no secret configured"
        logger.warning(
            "Rejected push with invalid webhook secret",
            extra={"client": client, "reason": reason},
        )
        return GuardDecision.unauthorized
