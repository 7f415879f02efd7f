"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets TESTING before settings are imported so no .env file is loaded.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from styleseason.adapters.rate_limit.policies import RateLimitPolicy  # noqa: E402


class FakeClock:
    """Deterministic clock used to test window and block expiry."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds

    def set(self, value: float) -> None:
        self.current = value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def small_policy() -> RateLimitPolicy:
    """Two requests per second, two second block."""
    return RateLimitPolicy(max_requests=2, window_seconds=1.0, block_duration_seconds=2.0)
