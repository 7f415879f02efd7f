"""Pydantic schemas for the rate limit endpoints."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from styleseason.adapters.rate_limit.base import RateLimitDecision
from styleseason.adapters.rate_limit.policies import RateLimitPolicy


class RateLimitCheckRequest(BaseModel):
    """Body of a rate limit check request."""

    identifier: str = Field(
        ..., description="Caller identity, e.g. 'user:42' or 'anonymous:default'."
    )
    endpoint: str = Field(
        ...,
        description=(
            "Policy name. Unknown names are allowed through (fail-open) and logged."
        ),
    )


class RateLimitCheckResponse(BaseModel):
    """Decision returned by the limiter."""

    allowed: bool = Field(..., description="Whether the request may proceed.")
    endpoint: str = Field(..., description="Policy name the decision applies to.")
    limit: int | None = Field(
        default=None, description="Requests allowed per window (absent for unknown endpoints)."
    )
    remaining_requests: int | None = Field(
        default=None, description="Quota left in the current window when allowed."
    )
    reset_at: float | None = Field(
        default=None, description="UNIX time (seconds) when the current window ends."
    )
    retry_after_seconds: int | None = Field(
        default=None, description="Seconds to wait before retrying when rejected."
    )

    @classmethod
    def from_decision(cls, decision: RateLimitDecision) -> "RateLimitCheckResponse":
        return cls(
            allowed=decision.allowed,
            endpoint=decision.endpoint,
            limit=decision.limit,
            remaining_requests=decision.remaining_requests,
            reset_at=decision.reset_at,
            retry_after_seconds=decision.retry_after_seconds,
        )


class RateLimitPolicyResponse(BaseModel):
    """One entry of the policy table."""

    endpoint: str
    max_requests: int
    window_seconds: float
    block_duration_seconds: float

    @classmethod
    def from_policy(cls, endpoint: str, policy: RateLimitPolicy) -> "RateLimitPolicyResponse":
        return cls(
            endpoint=endpoint,
            max_requests=policy.max_requests,
            window_seconds=policy.window_seconds,
            block_duration_seconds=policy.block_duration_seconds,
        )


class RateLimitPoliciesResponse(BaseModel):
    policies: List[RateLimitPolicyResponse] = Field(default_factory=list)
