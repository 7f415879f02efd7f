"""Rate limiter interfaces.

Routes and decorators depend on this abstraction (not the concrete
implementation) so the per-process store could be replaced by a shared one
without touching the callers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping

from styleseason.adapters.rate_limit.policies import RateLimitPolicy


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed.
        endpoint: Policy name the decision was made for.
        limit: Max requests per window (None when no policy applied).
        remaining_requests: Quota left in the current window (allowed only).
        reset_at: Clock time (seconds) when the current window ends (allowed only).
        retry_after_seconds: Seconds until the block lifts (rejected only).
    """

    allowed: bool
    endpoint: str
    limit: int | None = None
    remaining_requests: int | None = None
    reset_at: float | None = None
    retry_after_seconds: int | None = None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @property
    @abstractmethod
    def policies(self) -> Mapping[str, RateLimitPolicy]:
        """Policy table keyed by endpoint name."""
        raise NotImplementedError

    @abstractmethod
    def check(self, identifier: str, endpoint: str) -> RateLimitDecision:
        """Record a request for ``identifier`` against ``endpoint`` and decide.

        Every call counts as a request; there is no side-effect free peek.

        Args:
            identifier: Caller identity (e.g. ``user:<id>``).
            endpoint: Policy name.

        Returns:
            RateLimitDecision describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> int:
        """Drop stale entries and return how many were removed."""
        raise NotImplementedError
