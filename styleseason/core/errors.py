"""Application-level exception types.

This module defines domain errors used across the limiter, its wiring and
the HTTP layer, enabling consistent error handling, logging, and API
responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    http_status: int
    endpoint: str
    retry_after: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class RateLimitedAppError(AppError):
    """Raised when a caller has exhausted its quota for an endpoint.

    This is an expected outcome rather than a fault: the HTTP layer maps it
    to 429 with a ``Retry-After`` header.
    """

    def __init__(
        self,
        *,
        endpoint: str,
        retry_after_seconds: int,
        limit: int | None = None,
        remaining: int | None = None,
        reset_at: float | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit
        self.remaining = remaining
        self.reset_at = reset_at
        super().__init__(
            code="rate_limit_exceeded",
            message=(
                f"Rate limit exceeded. Please try again in {retry_after_seconds} seconds."
            ),
            details={"endpoint": endpoint, "retry_after": retry_after_seconds},
        )
