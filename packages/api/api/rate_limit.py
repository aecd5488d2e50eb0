"""Per-client admission control for the chat endpoints."""

import logging
import math
import os
from dataclasses import dataclass

from fastapi import Request

from relay.identity import resolve_client_identity
from relay.rate_limit import RateLimiter, RateLimitResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimitPolicy:
    """How many chat requests a client may make per window."""

    max_requests: int = 15
    window_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> "RateLimitPolicy":
        return cls(
            max_requests=int(os.environ.get("RATE_LIMIT_MAX_REQUESTS", "15")),
            window_seconds=float(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", "60")),
        )


@dataclass(frozen=True)
class Admission:
    """Result of admitting one request, carried into the route handler."""

    identity: str
    result: RateLimitResult
    limit: int
    retry_after: int = 0

    @property
    def allowed(self) -> bool:
        return self.result.allowed

    def headers(self) -> dict[str, str]:
        """Rate-limit headers for the response."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.result.remaining)),
            "X-RateLimit-Reset": str(math.ceil(self.result.reset_at)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def get_limiter(request: Request) -> RateLimiter:
    """Retrieve the process-wide limiter from app state."""
    return request.app.state.limiter


def get_policy(request: Request) -> RateLimitPolicy:
    return request.app.state.rate_limit_policy


async def rate_limit(request: Request) -> Admission:
    """Count the request against its client and report the decision.

    Rejections are not raised here: each endpoint renders them in its own
    response format (event stream or JSON).
    """
    limiter = get_limiter(request)
    policy = get_policy(request)
    identity = resolve_client_identity(request.headers)

    result = limiter.check(identity, policy.max_requests, policy.window_seconds)
    if not result.allowed:
        retry_after = result.retry_after(limiter.now())
        logger.warning(
            "Rate limit exceeded for %s (retry after %ss)", identity, retry_after
        )
        return Admission(identity, result, policy.max_requests, retry_after)

    logger.info("Admitted %s, %d request(s) remaining", identity, result.remaining)
    return Admission(identity, result, policy.max_requests)
