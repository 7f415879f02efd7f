from __future__ import annotations

from fastapi import APIRouter, Depends

from styleseason.adapters.rate_limit.base import AbstractRateLimiter
from styleseason.adapters.rate_limit.policies import RateLimitEndpoint
from styleseason.core.errors import ValidationAppError
from styleseason.core.rate_limit import enforce_rate_limit, get_rate_limiter
from styleseason.schemas.rate_limit import (
    RateLimitCheckRequest,
    RateLimitCheckResponse,
    RateLimitPoliciesResponse,
    RateLimitPolicyResponse,
)

router = APIRouter(tags=["Rate limits"])


@router.get(
    "/rate-limit/policies",
    response_model=RateLimitPoliciesResponse,
    dependencies=[Depends(enforce_rate_limit(RateLimitEndpoint.USER_ACTION))],
)
def list_policies(
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> RateLimitPoliciesResponse:
    """List the per-endpoint quotas enforced by this instance."""

    return RateLimitPoliciesResponse(
        policies=[
            RateLimitPolicyResponse.from_policy(name, policy)
            for name, policy in sorted(limiter.policies.items())
        ]
    )


@router.post("/rate-limit/check", response_model=RateLimitCheckResponse)
def check_rate_limit(
    payload: RateLimitCheckRequest,
    limiter: AbstractRateLimiter = Depends(get_rate_limiter),
) -> RateLimitCheckResponse:
    """Count a request for ``identifier`` against ``endpoint`` and return the decision.

    A rejection is a normal 200 response with ``allowed: false``; callers
    decide how to surface it. Counters are per-process, so this is not a
    cross-instance check.

    Raises:
        ValidationAppError: If the identifier is blank.
    """

    identifier = payload.identifier.strip()
    if not identifier:
        raise ValidationAppError(
            code="invalid_identifier",
            message="identifier must be a non-empty string",
        )

    decision = limiter.check(identifier, payload.endpoint.strip())
    return RateLimitCheckResponse.from_decision(decision)
