"""In-memory fixed-window rate limiter with a punitive block period.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: check-then-update runs under one lock.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping

from styleseason.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from styleseason.adapters.rate_limit.policies import (
    DEFAULT_POLICIES,
    RateLimitEndpoint,
    RateLimitPolicy,
    endpoint_name,
)

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    """Counter state for one ``identifier:endpoint`` key."""

    count: int
    window_start: float
    blocked_until: float | None = None


class InMemoryBlockingRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed window per key plus a block on overflow.

    The window starts at the first request for a key (not at a clock
    boundary). Once a key has used its quota, the next request inside the
    window blocks the key for the policy's block duration; every request
    during the block is rejected.

    Important:
        This limiter is per-process only. If the API runs with multiple
        workers, each worker enforces its own independent limits.
    """

    def __init__(
        self,
        *,
        policies: Mapping[str, RateLimitPolicy] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            policies: Policy table keyed by endpoint name. Defaults to DEFAULT_POLICIES.
            clock: Time source returning seconds.

        Raises:
            ValueError: If the policy table is empty.
        """
        table = dict(DEFAULT_POLICIES if policies is None else policies)
        if not table:
            raise ValueError("at least one rate limit policy is required")

        self._policies = {endpoint_name(name): policy for name, policy in table.items()}
        self._max_age = max(policy.max_age_seconds for policy in self._policies.values())
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}

    @property
    def policies(self) -> Mapping[str, RateLimitPolicy]:
        return dict(self._policies)

    @property
    def max_age_seconds(self) -> float:
        return self._max_age

    def policy_for(self, endpoint: RateLimitEndpoint | str) -> RateLimitPolicy | None:
        return self._policies.get(endpoint_name(endpoint))

    def get_entry(self, identifier: str, endpoint: RateLimitEndpoint | str) -> RateLimitEntry | None:
        """Return a copy of the stored entry for inspection, if any."""
        with self._lock:
            entry = self._entries.get(_build_key(identifier, endpoint_name(endpoint)))
            if entry is None:
                return None
            return RateLimitEntry(
                count=entry.count,
                window_start=entry.window_start,
                blocked_until=entry.blocked_until,
            )

    def check(self, identifier: str, endpoint: RateLimitEndpoint | str) -> RateLimitDecision:
        """Count a request and decide whether it is allowed.

        Args:
            identifier: Caller identity (e.g. ``user:42``).
            endpoint: Policy name.

        Returns:
            RateLimitDecision. Unknown endpoints are allowed (fail-open).

        Raises:
            ValueError: If identifier is empty.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        name = endpoint_name(endpoint)
        policy = self._policies.get(name)
        if policy is None:
            return self._allow_unknown_endpoint(name)

        key = _build_key(identifier, name)

        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is not None and entry.blocked_until is not None and entry.blocked_until > now:
                return self._build_rejected(
                    name,
                    policy,
                    retry_after=entry.blocked_until - now,
                )

            if entry is None or now - entry.window_start > policy.window_seconds:
                self._entries[key] = RateLimitEntry(count=1, window_start=now)
                return self._build_allowed(
                    name,
                    policy,
                    remaining=policy.max_requests - 1,
                    reset_at=now + policy.window_seconds,
                )

            if entry.count >= policy.max_requests:
                entry.blocked_until = now + policy.block_duration_seconds
                logger.info(
                    "rate_limit.blocked",
                    extra={
                        "endpoint": name,
                        "limit": policy.max_requests,
                        "block_s": policy.block_duration_seconds,
                    },
                )
                return self._build_rejected(
                    name,
                    policy,
                    retry_after=policy.block_duration_seconds,
                )

            entry.count += 1
            return self._build_allowed(
                name,
                policy,
                remaining=policy.max_requests - entry.count,
                reset_at=entry.window_start + policy.window_seconds,
            )

    def cleanup(self) -> int:
        """Delete entries whose window started longer ago than any policy cares about.

        Decisions never depend on this running; it only bounds memory.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            stale_keys = [
                key
                for key, entry in self._entries.items()
                if now - entry.window_start > self._max_age
            ]
            for key in stale_keys:
                del self._entries[key]
            remaining = len(self._entries)

        logger.debug(
            "rate_limit.cleanup",
            extra={"removed": len(stale_keys), "entries": remaining},
        )
        return len(stale_keys)

    def stats(self) -> dict[str, int | float]:
        """Return lightweight store metrics without exposing identifiers."""

        with self._lock:
            return {
                "entries": len(self._entries),
                "policies": len(self._policies),
                "max_age_seconds": self._max_age,
            }

    def _allow_unknown_endpoint(self, name: str) -> RateLimitDecision:
        # Fail open: a missing policy must not block a new feature.
        logger.warning(
            "rate_limit.unknown_endpoint",
            extra={"endpoint": name, "known_endpoints": sorted(self._policies)},
        )
        return RateLimitDecision(allowed=True, endpoint=name)

    @staticmethod
    def _build_allowed(
        name: str, policy: RateLimitPolicy, *, remaining: int, reset_at: float
    ) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=True,
            endpoint=name,
            limit=policy.max_requests,
            remaining_requests=remaining,
            reset_at=reset_at,
        )

    @staticmethod
    def _build_rejected(
        name: str, policy: RateLimitPolicy, *, retry_after: float
    ) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=False,
            endpoint=name,
            limit=policy.max_requests,
            remaining_requests=0,
            retry_after_seconds=int(math.ceil(retry_after)),
        )


def _build_key(identifier: str, name: str) -> str:
    return f"{identifier}:{name}"
