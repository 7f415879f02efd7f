"""Rate limiting wiring for operations and FastAPI routes.

This module connects the limiter adapter to its callers:
- ``rate_limited``: decorator gating any sync or async operation.
- ``enforce_rate_limit``: FastAPI dependency factory gating a route.
- Identifier helpers mapping a caller to its rate limit bucket.

The limiter instance is created once per application (see
``create_rate_limiter``) and stored on ``app.state``; nothing here keeps a
module-level store.

Identifier strategy:
- Authenticated callers are keyed as ``user:<id>``.
- Everyone else shares the configured anonymous identifier, so all anonymous
  traffic contends for one quota.
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
import random
from typing import Any, Callable, Optional, TypeVar

from fastapi import Request, Response

from styleseason.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision
from styleseason.adapters.rate_limit.in_memory import InMemoryBlockingRateLimiter
from styleseason.adapters.rate_limit.policies import RateLimitEndpoint, endpoint_name
from styleseason.core.config import settings
from styleseason.core.errors import RateLimitedAppError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Marks dependencies built by enforce_rate_limit so docs can find gated routes
RATE_LIMIT_MARKER = "__rate_limit_endpoint__"


def create_rate_limiter() -> InMemoryBlockingRateLimiter:
    """Build the limiter owned by one application instance."""

    return InMemoryBlockingRateLimiter()


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """FastAPI dependency returning the application's limiter.

    The limiter is created lazily on first use if the app factory did not
    install one.
    """

    state = request.app.state
    limiter = getattr(state, "rate_limiter", None)
    if limiter is None:
        limiter = create_rate_limiter()
        state.rate_limiter = limiter
    return limiter


def user_identifier(user_id: Optional[str]) -> str:
    """Return the rate limit identifier for a (possibly anonymous) caller.

    Examples:
        >>> user_identifier("42")
        'user:42'
        >>> user_identifier(None)
        'anonymous:default'
    """

    if user_id:
        return f"user:{user_id}"
    return settings.app.rate_limit_anonymous_identifier


def identifier_from_request(request: Request) -> str:
    """Build the limiter identifier for an HTTP request.

    Only the user id set on ``request.state`` by an upstream auth layer is
    trusted; request headers never select a bucket.
    """

    user_id = getattr(request.state, "user_id", None)
    return user_identifier(str(user_id).strip() if user_id else None)


def _hash_identifier(identifier: str) -> str:
    """Hash the identifier for logging without exposing user ids."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


def _raise_rejected(decision: RateLimitDecision, identifier: str) -> None:
    retry_after = decision.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "endpoint": decision.endpoint,
            "identifier_hash": _hash_identifier(identifier),
            "limit": decision.limit,
            "retry_after_s": retry_after,
        },
    )
    raise RateLimitedAppError(
        endpoint=decision.endpoint,
        retry_after_seconds=retry_after,
        limit=decision.limit,
        remaining=decision.remaining_requests,
        reset_at=decision.reset_at,
    )


def _maybe_cleanup(
    limiter: AbstractRateLimiter,
    probability: float,
    rng: Callable[[], float],
) -> None:
    # Amortized maintenance instead of a background timer.
    if probability > 0 and rng() < probability:
        limiter.cleanup()


def rate_limited(
    endpoint: RateLimitEndpoint | str,
    identifier_extractor: Callable[..., str],
    *,
    limiter: AbstractRateLimiter,
    cleanup_probability: float | None = None,
    rng: Callable[[], float] = random.random,
) -> Callable[[F], F]:
    """Decorate an operation so it only runs when the caller is within quota.

    The wrapped callable keeps the operation's signature. Before each call
    ``identifier_extractor`` receives the same arguments as the operation and
    returns the caller's identifier. Rejected calls raise
    ``RateLimitedAppError``; errors from the operation itself propagate
    unchanged. After a successful call a stale entry sweep runs with
    probability ``cleanup_probability``.

    Usage:
        @rate_limited("woocommerce_sync", lambda ctx, args: user_identifier(ctx.user_id),
                      limiter=limiter)
        async def sync_products(ctx, args):
            ...

    Args:
        endpoint: Policy name to apply.
        identifier_extractor: Maps the call arguments to an identifier.
        limiter: Limiter holding the counters.
        cleanup_probability: Sweep chance per successful call; defaults to settings.
        rng: Random source returning floats in [0, 1).

    Returns:
        Decorator producing the gated operation.
    """

    name = endpoint_name(endpoint)
    probability = (
        settings.app.rate_limit_cleanup_probability
        if cleanup_probability is None
        else cleanup_probability
    )

    def _gate(args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        identifier = identifier_extractor(*args, **kwargs)
        decision = limiter.check(identifier, name)
        if not decision.allowed:
            _raise_rejected(decision, identifier)

    def decorator(operation: F) -> F:
        if inspect.iscoroutinefunction(operation):

            @functools.wraps(operation)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                _gate(args, kwargs)
                result = await operation(*args, **kwargs)
                _maybe_cleanup(limiter, probability, rng)
                return result

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(operation)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            _gate(args, kwargs)
            result = operation(*args, **kwargs)
            _maybe_cleanup(limiter, probability, rng)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


def _apply_headers(response: Response, decision: RateLimitDecision) -> None:
    if decision.limit is None:
        return
    response.headers["X-RateLimit-Limit"] = str(decision.limit)
    if decision.remaining_requests is not None:
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining_requests)
    if decision.reset_at is not None:
        response.headers["X-RateLimit-Reset"] = str(int(decision.reset_at))


def enforce_rate_limit(endpoint: RateLimitEndpoint | str) -> Callable[..., Any]:
    """Build a FastAPI dependency enforcing ``endpoint``'s policy.

    When enabled, counts one request for the caller. If the caller exceeds
    the policy, raises ``RateLimitedAppError`` (mapped to HTTP 429 by the
    exception handlers).

    Usage:
        @router.get("/products", dependencies=[Depends(enforce_rate_limit("product_query"))])
        async def list_products():
            ...
    """

    name = endpoint_name(endpoint)

    async def dependency(request: Request, response: Response) -> None:
        if not settings.app.rate_limit_enabled:
            return

        limiter = get_rate_limiter(request)
        identifier = identifier_from_request(request)
        decision = limiter.check(identifier, name)

        if not decision.allowed:
            _raise_rejected(decision, identifier)

        logger.info(
            "rate_limit.allowed",
            extra={
                "endpoint": name,
                "identifier_hash": _hash_identifier(identifier),
                "limit": decision.limit,
                "remaining": decision.remaining_requests,
            },
        )
        if settings.app.rate_limit_include_headers:
            _apply_headers(response, decision)

        _maybe_cleanup(limiter, settings.app.rate_limit_cleanup_probability, random.random)

    setattr(dependency, RATE_LIMIT_MARKER, name)
    return dependency
