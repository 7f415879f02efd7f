"""Static per-endpoint rate limit policies."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class RateLimitEndpoint(str, Enum):
    """Closed set of rate limited endpoint names."""

    WOOCOMMERCE_SYNC = "woocommerce_sync"
    PRODUCT_QUERY = "product_query"
    PRODUCT_SEARCH = "product_search"
    USER_ACTION = "user_action"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Quota for one endpoint.

    Attributes:
        max_requests: Requests allowed per window.
        window_seconds: Length of the fixed window.
        block_duration_seconds: How long a key stays blocked after exceeding the quota.
    """

    max_requests: int
    window_seconds: float
    block_duration_seconds: float

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if self.block_duration_seconds < 0:
            raise ValueError("block_duration_seconds must be >= 0")

    @property
    def max_age_seconds(self) -> float:
        """Longest time an entry under this policy can still matter."""
        return self.window_seconds + self.block_duration_seconds


DEFAULT_POLICIES: Mapping[str, RateLimitPolicy] = {
    # Resource intensive product sync
    RateLimitEndpoint.WOOCOMMERCE_SYNC.value: RateLimitPolicy(
        max_requests=2,
        window_seconds=60 * 60,
        block_duration_seconds=60 * 60,
    ),
    RateLimitEndpoint.PRODUCT_QUERY.value: RateLimitPolicy(
        max_requests=100,
        window_seconds=60,
        block_duration_seconds=5 * 60,
    ),
    RateLimitEndpoint.PRODUCT_SEARCH.value: RateLimitPolicy(
        max_requests=50,
        window_seconds=60,
        block_duration_seconds=5 * 60,
    ),
    RateLimitEndpoint.USER_ACTION.value: RateLimitPolicy(
        max_requests=200,
        window_seconds=60,
        block_duration_seconds=2 * 60,
    ),
}


def endpoint_name(endpoint: RateLimitEndpoint | str) -> str:
    """Normalize an enum member or raw string to the policy name."""
    if isinstance(endpoint, RateLimitEndpoint):
        return endpoint.value
    return str(endpoint)
