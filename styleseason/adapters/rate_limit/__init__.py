"""Rate limiting adapters.

This package keeps the limiter behind a small abstraction so the in-memory
store can later be swapped for a shared one without changing the API layer.
"""

from styleseason.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from styleseason.adapters.rate_limit.in_memory import InMemoryBlockingRateLimiter, RateLimitEntry
from styleseason.adapters.rate_limit.policies import (
    DEFAULT_POLICIES,
    RateLimitEndpoint,
    RateLimitPolicy,
)

__all__ = [
    "AbstractRateLimiter",
    "DEFAULT_POLICIES",
    "InMemoryBlockingRateLimiter",
    "RateLimitDecision",
    "RateLimitEndpoint",
    "RateLimitEntry",
    "RateLimitPolicy",
]
