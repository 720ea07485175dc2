"""Per-client, per-endpoint rate limiting.

Security: Prevents abuse of code issuance, LLM generation and admin
endpoints.

Policy per endpoint name is a fixed window of (requests, window). Beyond
the window limit requests are denied with a Retry-After hint; at three
times the limit in the same window the client address is additionally
blocked for BLOCK_DURATION, independent of window resets. A permanent
denylist is checked before anything else.

State is in process memory (suitable for single-instance deployment) and
guarded by one lock.

Usage in routers:
    @router.post("/request-code", dependencies=[Depends(rate_limit("verify-domain"))])
    async def request_code(...):
        ...
"""

import math
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from fastapi import Request, Response

from presswire.core.config import settings
from presswire.core.errors import RateLimitedError
from presswire.core.store import Clock, utc_now


@dataclass(frozen=True)
class RateLimitPolicy:
    """Maximum requests allowed per window."""

    requests: int
    window: timedelta


RATE_LIMITS: dict[str, RateLimitPolicy] = {
    "verify-domain": RateLimitPolicy(5, timedelta(minutes=15)),
    "generate-pr": RateLimitPolicy(3, timedelta(hours=1)),
    "send-email": RateLimitPolicy(10, timedelta(hours=1)),
    "admin": RateLimitPolicy(10, timedelta(minutes=5)),
    "manage-pr": RateLimitPolicy(30, timedelta(minutes=1)),
    "default": RateLimitPolicy(30, timedelta(minutes=1)),
}

# Multiple of the window limit that escalates to a temporary block
BLOCK_MULTIPLIER = 3
BLOCK_DURATION = timedelta(hours=1)

# Entries whose window started longer ago than this are swept
HOUSEKEEPING_HORIZON = timedelta(hours=1)
SWEEP_PROBABILITY = 0.01


@dataclass
class _Window:
    count: int
    started_at: datetime


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Policy request limit (0 for blocked addresses).
        remaining: Requests left in the current window.
        reset_at: When the current window ends (None for blocked addresses).
        retry_after: Seconds to wait before retrying (None when allowed or
            permanently blocked).
        status_code: 429 for rate limited, 403 for permanently blocked.
        reason: Human-readable denial reason.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime | None
    retry_after: int | None = None
    status_code: int = 200
    reason: str = ""

    def headers(self) -> dict[str, str]:
        """X-RateLimit-* headers (and Retry-After on denial)."""
        headers: dict[str, str] = {}
        if self.reset_at is not None:
            headers["X-RateLimit-Limit"] = str(self.limit)
            headers["X-RateLimit-Remaining"] = str(self.remaining)
            headers["X-RateLimit-Reset"] = self.reset_at.isoformat()
        if self.retry_after is not None:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimiter:
    """Fixed-window limiter with escalation to temporary blocks.

    Args:
        policies: Policy per endpoint name; must include "default".
        permanent_blocklist: Addresses that are always denied.
        clock: Returns the current UTC time.
        rng: Returns a float in [0, 1); drives probabilistic sweeps.
    """

    def __init__(
        self,
        policies: dict[str, RateLimitPolicy] | None = None,
        *,
        permanent_blocklist: frozenset[str] = frozenset(),
        clock: Clock = utc_now,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._policies = dict(policies or RATE_LIMITS)
        if "default" not in self._policies:
            self._policies["default"] = RATE_LIMITS["default"]
        self._permanent_blocklist = permanent_blocklist
        self._clock = clock
        self._rng = rng
        self._windows: dict[tuple[str, str], _Window] = {}
        self._blocked_until: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def policy_for(self, endpoint: str) -> RateLimitPolicy:
        """Policy for endpoint, falling back to the default policy."""
        return self._policies.get(endpoint, self._policies["default"])

    def check(self, client: str, endpoint: str) -> RateLimitDecision:
        """Count one request and decide whether it may proceed.

        Args:
            client: Client address.
            endpoint: Logical endpoint name used to pick the policy.

        Returns:
            RateLimitDecision for this request.
        """
        if client in self._permanent_blocklist:
            return RateLimitDecision(
                allowed=False,
                limit=0,
                remaining=0,
                reset_at=None,
                status_code=403,
                reason="Your IP has been permanently blocked",
            )

        policy = self.policy_for(endpoint)
        now = self._clock()

        with self._lock:
            blocked_until = self._blocked_until.get(client)
            if blocked_until is not None:
                if now < blocked_until:
                    return RateLimitDecision(
                        allowed=False,
                        limit=policy.requests,
                        remaining=0,
                        reset_at=blocked_until,
                        retry_after=_ceil_seconds(blocked_until - now),
                        status_code=429,
                        reason="Too many requests. IP temporarily blocked.",
                    )
                del self._blocked_until[client]

            key = (client, endpoint)
            window = self._windows.get(key)
            if window is None or now - window.started_at > policy.window:
                window = _Window(count=0, started_at=now)
                self._windows[key] = window
            window.count += 1
            reset_at = window.started_at + policy.window

            if window.count > policy.requests:
                # Reaching three times the limit inside one window escalates
                if window.count >= policy.requests * BLOCK_MULTIPLIER:
                    self._blocked_until[client] = now + BLOCK_DURATION
                return RateLimitDecision(
                    allowed=False,
                    limit=policy.requests,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after=_ceil_seconds(reset_at - now),
                    status_code=429,
                    reason="Rate limit exceeded",
                )

            if self._rng() < SWEEP_PROBABILITY:
                self._sweep(now)

            return RateLimitDecision(
                allowed=True,
                limit=policy.requests,
                remaining=policy.requests - window.count,
                reset_at=reset_at,
            )

    def sweep(self) -> int:
        """Drop stale windows and elapsed blocks now.

        Returns:
            Number of windows removed.
        """
        with self._lock:
            return self._sweep(self._clock())

    def _sweep(self, now: datetime) -> int:
        # Caller holds self._lock
        stale = [
            key
            for key, window in self._windows.items()
            if now - window.started_at > HOUSEKEEPING_HORIZON
        ]
        for key in stale:
            del self._windows[key]
        for client in [c for c, until in self._blocked_until.items() if until <= now]:
            del self._blocked_until[client]
        return len(stale)

    def is_blocked(self, client: str) -> bool:
        """Whether client is currently on the temporary or permanent blocklist."""
        if client in self._permanent_blocklist:
            return True
        with self._lock:
            until = self._blocked_until.get(client)
            return until is not None and self._clock() < until

    def reset(self) -> None:
        """Clear all counters and blocks (for testing)."""
        with self._lock:
            self._windows.clear()
            self._blocked_until.clear()


def _ceil_seconds(delta: timedelta) -> int:
    return max(0, math.ceil(delta.total_seconds()))


def get_client_address(request: Request) -> str:
    """Client address from proxy headers, falling back to the socket peer.

    Checks X-Forwarded-For (first hop), Client-IP, then X-Real-IP.

    Security: Assumes the app runs behind a trusted reverse proxy that
    overwrites these headers. Exposed directly, a client can rotate
    X-Forwarded-For to escape its limits and any temporary block.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    for header in ("client-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


# Global limiter instance
_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Get the singleton rate limiter."""
    global _limiter
    if _limiter is None:
        _limiter = RateLimiter(permanent_blocklist=settings.rate_limit_blocked_ips)
    return _limiter


def reset_rate_limiter() -> None:
    """Reset the rate limiter singleton (for testing)."""
    global _limiter
    _limiter = None


def rate_limit(endpoint: str) -> Callable[[Request, Response], None]:
    """Build a FastAPI dependency that enforces the policy for endpoint.

    Allowed requests get X-RateLimit-* headers on the response; denied
    requests raise RateLimitedError, rendered by the APIError handler.
    """

    def dependency(request: Request, response: Response) -> None:
        if not settings.rate_limit_enabled:
            return
        decision = get_rate_limiter().check(get_client_address(request), endpoint)
        if not decision.allowed:
            raise RateLimitedError(
                decision.reason,
                retry_after=decision.retry_after,
                status_code=decision.status_code,
                headers=decision.headers(),
            )
        for name, value in decision.headers().items():
            response.headers[name] = value

    return dependency
