"""Error taxonomy shared by the services and the HTTP layer."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from fastapi import status


class ValidationReason(str, Enum):
    """Constraint families a candidate reading can violate."""

    missing_field = "missing_field"
    not_a_number = "not_a_number"
    out_of_range = "out_of_range"
    invalid_window = "invalid_window"


class ServiceError(Exception):
    """Base class for failures that map onto an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    reason: str = "internal_error"
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    @property
    def response_message(self) -> str:
        return self.message


class AuthorizationError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    reason = "unauthorized"
    public_message = "Unauthorized"

    @property
    def response_message(self) -> str:
        return self.public_message


class ValidationError(ServiceError):
    """A payload failed one of the ordered reading checks."""

    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid reading"

    def __init__(self, validation_reason: ValidationReason, message: str) -> None:
        super().__init__(message)
        self.validation_reason = validation_reason
        self.reason = validation_reason.value


class RateLimitError(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    reason = "rate_limited"
    public_message = "Too many requests, try again later"

    def __init__(self, message: Optional[str] = None, retry_after: float = 0.0) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class StoreError(ServiceError):
    """Persistence failure; the detail stays in the server logs."""

    reason = "store_failure"
    public_message = "Failed to access stored readings"

    @property
    def response_message(self) -> str:
        return self.public_message


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    reason = "not_found"
    public_message = "Endpoint not found"
