"""Validation of loosely-typed reading payloads pushed by the sensor."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from app.errors import ValidationError, ValidationReason
from models.records import Reading

TEMPERATURE_RANGE = (-50.0, 100.0)
HUMIDITY_RANGE = (0.0, 100.0)

_REQUIRED_FIELDS = ("temperature", "humidity")
_TIMESTAMP_FIELD = "created_at"


@dataclass(frozen=True)
class _Candidate:
    """Intermediate state threaded through the ordered checks."""

    payload: Mapping[str, Any]
    temperature: Optional[float] = None
    humidity: Optional[float] = None


CheckResult = Union[_Candidate, ValidationError]
Check = Callable[[Any], CheckResult]


def coerce_number(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or ``None`` when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        candidate = value.strip()
        if not candidate:
            return None
        try:
            number = float(candidate)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings or epoch seconds into an aware UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            if not math.isfinite(value):
                return None
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    candidate = value.strip()
    if not candidate:
        return None
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _check_shape(payload: Any) -> CheckResult:
    if not isinstance(payload, Mapping):
        return ValidationError(
            ValidationReason.missing_field, "Request body must be a JSON object"
        )
    return _Candidate(payload=payload)


def _check_presence(candidate: _Candidate) -> CheckResult:
    missing = [name for name in _REQUIRED_FIELDS if candidate.payload.get(name) is None]
    if missing:
        return ValidationError(
            ValidationReason.missing_field,
            f"Missing required fields: {', '.join(missing)}",
        )
    return candidate


def _check_numeric(candidate: _Candidate) -> CheckResult:
    temperature = coerce_number(candidate.payload["temperature"])
    humidity = coerce_number(candidate.payload["humidity"])
    invalid = [
        name
        for name, value in (("temperature", temperature), ("humidity", humidity))
        if value is None
    ]
    if invalid:
        return ValidationError(
            ValidationReason.not_a_number,
            f"Fields must be finite numbers: {', '.join(invalid)}",
        )
    return _Candidate(payload=candidate.payload, temperature=temperature, humidity=humidity)


def _check_range(candidate: _Candidate) -> CheckResult:
    low, high = TEMPERATURE_RANGE
    if not low <= candidate.temperature <= high:
        return ValidationError(
            ValidationReason.out_of_range,
            f"temperature must be between {low:g} and {high:g}",
        )
    low, high = HUMIDITY_RANGE
    if not low <= candidate.humidity <= high:
        return ValidationError(
            ValidationReason.out_of_range,
            f"humidity must be between {low:g} and {high:g}",
        )
    return candidate


class ReadingValidator:
    """Runs the reading checks in a fixed order; the first failure wins."""

    def __init__(self, source: str, checks: Optional[Sequence[Check]] = None) -> None:
        self.source = source
        self.checks: tuple[Check, ...] = tuple(
            checks or (_check_shape, _check_presence, _check_numeric, _check_range)
        )

    def evaluate(self, payload: Any, received_at: datetime) -> Union[Reading, ValidationError]:
        """Return a ``Reading`` or the first ``ValidationError`` encountered."""
        state: Any = payload
        for check in self.checks:
            state = check(state)
            if isinstance(state, ValidationError):
                return state

        recorded_at = parse_timestamp(state.payload.get(_TIMESTAMP_FIELD)) or received_at
        return Reading(
            temperature=state.temperature,
            humidity=state.humidity,
            recorded_at=recorded_at,
            source=self.source,
        )

    def validate(self, payload: Any, received_at: datetime) -> Reading:
        outcome = self.evaluate(payload, received_at)
        if isinstance(outcome, ValidationError):
            raise outcome
        return outcome
