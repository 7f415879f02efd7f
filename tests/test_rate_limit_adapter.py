"""Unit tests for the in-memory blocking rate limiter adapter."""

import logging
import threading
from unittest.mock import Mock

import pytest

from styleseason.adapters.rate_limit.in_memory import InMemoryBlockingRateLimiter
from styleseason.adapters.rate_limit.policies import (
    DEFAULT_POLICIES,
    RateLimitEndpoint,
    RateLimitPolicy,
)


@pytest.fixture
def limiter(clock, small_policy) -> InMemoryBlockingRateLimiter:
    return InMemoryBlockingRateLimiter(policies={"small": small_policy}, clock=clock)


def test_first_request_opens_window(limiter, clock) -> None:
    decision = limiter.check("user:1", "small")

    assert decision.allowed is True
    assert decision.endpoint == "small"
    assert decision.limit == 2
    assert decision.remaining_requests == 1
    assert decision.reset_at == pytest.approx(clock() + 1.0)
    assert decision.retry_after_seconds is None

    entry = limiter.get_entry("user:1", "small")
    assert entry is not None
    assert entry.count == 1
    assert entry.window_start == clock()
    assert entry.blocked_until is None


def test_reset_at_stays_anchored_to_window_start(limiter, clock) -> None:
    start = clock()
    limiter.check("user:1", "small")
    clock.advance(0.4)

    decision = limiter.check("user:1", "small")

    assert decision.allowed is True
    assert decision.remaining_requests == 0
    assert decision.reset_at == pytest.approx(start + 1.0)


def test_request_over_quota_blocks_key(limiter, clock) -> None:
    assert limiter.check("user:1", "small").allowed is True
    assert limiter.check("user:1", "small").allowed is True

    blocked = limiter.check("user:1", "small")

    assert blocked.allowed is False
    assert blocked.remaining_requests == 0
    assert blocked.retry_after_seconds == 2
    entry = limiter.get_entry("user:1", "small")
    assert entry.blocked_until == pytest.approx(clock() + 2.0)


def test_documented_scenario(limiter, clock) -> None:
    clock.set(0.0)
    assert limiter.check("user:1", "small").allowed is True
    clock.set(0.1)
    assert limiter.check("user:1", "small").allowed is True
    clock.set(0.2)
    rejected = limiter.check("user:1", "small")
    assert rejected.allowed is False
    assert rejected.retry_after_seconds == 2

    clock.set(2.3)
    after_block = limiter.check("user:1", "small")

    assert after_block.allowed is True
    assert after_block.remaining_requests == 1
    entry = limiter.get_entry("user:1", "small")
    assert entry.count == 1
    assert entry.window_start == 2.3


def test_retry_after_decreases_while_blocked(limiter, clock) -> None:
    clock.set(0.0)
    limiter.check("user:1", "small")
    limiter.check("user:1", "small")
    clock.set(0.2)
    assert limiter.check("user:1", "small").allowed is False

    retry_values = []
    for t in (0.5, 1.3, 2.0):
        clock.set(t)
        decision = limiter.check("user:1", "small")
        assert decision.allowed is False
        retry_values.append(decision.retry_after_seconds)

    assert retry_values == sorted(retry_values, reverse=True)
    assert retry_values[0] > retry_values[-1]
    assert all(value > 0 for value in retry_values)

    clock.set(2.25)
    decision = limiter.check("user:1", "small")
    assert decision.allowed is True
    assert limiter.get_entry("user:1", "small").count == 1


def test_requests_while_blocked_do_not_extend_block(limiter, clock) -> None:
    limiter.check("user:1", "small")
    limiter.check("user:1", "small")
    limiter.check("user:1", "small")
    blocked_until = limiter.get_entry("user:1", "small").blocked_until

    clock.advance(1.5)
    limiter.check("user:1", "small")

    assert limiter.get_entry("user:1", "small").blocked_until == blocked_until


def test_window_expiry_resets_count(limiter, clock) -> None:
    limiter.check("user:1", "small")
    limiter.check("user:1", "small")

    clock.advance(1.01)
    decision = limiter.check("user:1", "small")

    assert decision.allowed is True
    assert decision.remaining_requests == 1


def test_window_boundary_is_inclusive(limiter, clock) -> None:
    limiter.check("user:1", "small")
    limiter.check("user:1", "small")

    # Exactly one window later the window has not yet elapsed.
    clock.advance(1.0)
    assert limiter.check("user:1", "small").allowed is False


def test_isolated_by_identifier(limiter) -> None:
    for _ in range(3):
        limiter.check("user:1", "small")

    decision = limiter.check("user:2", "small")

    assert decision.allowed is True
    assert decision.remaining_requests == 1
    assert limiter.get_entry("user:2", "small").count == 1


def test_isolated_by_endpoint(clock, small_policy) -> None:
    limiter = InMemoryBlockingRateLimiter(
        policies={"small": small_policy, "other": small_policy},
        clock=clock,
    )
    for _ in range(3):
        limiter.check("user:1", "small")

    decision = limiter.check("user:1", "other")

    assert decision.allowed is True
    assert limiter.get_entry("user:1", "other").count == 1
    assert limiter.get_entry("user:1", "small").count == 2


def test_unknown_endpoint_fails_open(limiter, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        decision = limiter.check("user:1", "brand_new_feature")

    assert decision.allowed is True
    assert decision.limit is None
    assert decision.remaining_requests is None
    assert limiter.get_entry("user:1", "brand_new_feature") is None
    assert any(r.getMessage() == "rate_limit.unknown_endpoint" for r in caplog.records)


def test_accepts_enum_endpoints() -> None:
    limiter = InMemoryBlockingRateLimiter(clock=Mock(return_value=1000.0))

    decision = limiter.check("user:1", RateLimitEndpoint.WOOCOMMERCE_SYNC)

    assert decision.endpoint == "woocommerce_sync"
    assert decision.limit == 2
    assert limiter.get_entry("user:1", "woocommerce_sync").count == 1


def test_woocommerce_sync_blocks_for_an_hour() -> None:
    clock = Mock(return_value=1000.0)
    limiter = InMemoryBlockingRateLimiter(clock=clock)

    assert limiter.check("user:1", "woocommerce_sync").allowed is True
    assert limiter.check("user:1", "woocommerce_sync").allowed is True
    blocked = limiter.check("user:1", "woocommerce_sync")

    assert blocked.allowed is False
    assert blocked.retry_after_seconds == 3600


def test_cleanup_removes_only_stale_entries(clock, small_policy) -> None:
    long_policy = RateLimitPolicy(max_requests=5, window_seconds=10, block_duration_seconds=20)
    limiter = InMemoryBlockingRateLimiter(
        policies={"small": small_policy, "long": long_policy},
        clock=clock,
    )
    assert limiter.max_age_seconds == 30

    clock.set(0.0)
    limiter.check("user:old", "small")
    clock.set(20.0)
    limiter.check("user:recent", "long")
    limiter.check("user:recent", "long")

    clock.set(31.0)
    removed = limiter.cleanup()

    assert removed == 1
    assert limiter.get_entry("user:old", "small") is None
    recent = limiter.get_entry("user:recent", "long")
    assert recent is not None
    assert recent.count == 2
    assert recent.window_start == 20.0
    assert limiter.stats()["entries"] == 1


def test_cleanup_is_noop_when_nothing_is_stale(limiter) -> None:
    limiter.check("user:1", "small")

    assert limiter.cleanup() == 0
    assert limiter.get_entry("user:1", "small").count == 1


def test_default_policy_table() -> None:
    assert DEFAULT_POLICIES["woocommerce_sync"] == RateLimitPolicy(2, 3600, 3600)
    assert DEFAULT_POLICIES["product_query"] == RateLimitPolicy(100, 60, 300)
    assert DEFAULT_POLICIES["product_search"] == RateLimitPolicy(50, 60, 300)
    assert DEFAULT_POLICIES["user_action"] == RateLimitPolicy(200, 60, 120)
    assert set(DEFAULT_POLICIES) == {e.value for e in RateLimitEndpoint}

    assert InMemoryBlockingRateLimiter().max_age_seconds == 7200


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": 0, "window_seconds": 60, "block_duration_seconds": 60},
        {"max_requests": 1, "window_seconds": 0, "block_duration_seconds": 60},
        {"max_requests": 1, "window_seconds": 60, "block_duration_seconds": -1},
    ],
)
def test_invalid_policy_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimitPolicy(**kwargs)


def test_invalid_constructor_and_check_args() -> None:
    with pytest.raises(ValueError):
        InMemoryBlockingRateLimiter(policies={})

    limiter = InMemoryBlockingRateLimiter()
    with pytest.raises(ValueError):
        limiter.check("", "user_action")


def test_concurrent_checks_never_exceed_quota() -> None:
    limiter = InMemoryBlockingRateLimiter(
        policies={"p": RateLimitPolicy(max_requests=100, window_seconds=60, block_duration_seconds=60)},
        clock=lambda: 1000.0,
    )
    start = threading.Barrier(8)
    allowed: list[bool] = []
    results_lock = threading.Lock()

    def worker() -> None:
        start.wait()
        outcomes = [limiter.check("user:1", "p").allowed for _ in range(50)]
        with results_lock:
            allowed.extend(outcomes)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(allowed) == 400
    assert sum(allowed) == 100
    entry = limiter.get_entry("user:1", "p")
    assert entry.count == 100
    assert entry.blocked_until == 1060.0
