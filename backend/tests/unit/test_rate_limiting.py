"""Tests for the fixed-window rate limiter and its FastAPI dependency."""

from datetime import timedelta

import pytest
from starlette.requests import Request

from conftest import FakeClock
from presswire.core.rate_limiting import (
    BLOCK_DURATION,
    RATE_LIMITS,
    RateLimiter,
    RateLimitPolicy,
    get_client_address,
    get_rate_limiter,
)


def _limiter(clock: FakeClock, **kwargs) -> RateLimiter:
    policies = {"tight": RateLimitPolicy(3, timedelta(seconds=1))}
    return RateLimiter(policies, clock=clock, rng=lambda: 1.0, **kwargs)


class TestWindowCounting:
    """Counting inside one window."""

    def test_allows_up_to_limit_then_denies(self, clock):
        limiter = _limiter(clock)
        decisions = [limiter.check("1.2.3.4", "tight") for _ in range(4)]
        assert [d.allowed for d in decisions] == [True, True, True, False]
        assert decisions[2].remaining == 0
        assert decisions[3].status_code == 429
        assert decisions[3].retry_after is not None
        assert decisions[3].retry_after <= 1

    def test_clients_and_endpoints_counted_separately(self, clock):
        limiter = _limiter(clock)
        for _ in range(3):
            limiter.check("1.2.3.4", "tight")
        assert limiter.check("5.6.7.8", "tight").allowed
        assert limiter.check("1.2.3.4", "other").allowed

    def test_window_resets_lazily(self, clock):
        limiter = _limiter(clock)
        for _ in range(4):
            limiter.check("1.2.3.4", "tight")
        clock.advance(seconds=1, milliseconds=1)
        decision = limiter.check("1.2.3.4", "tight")
        assert decision.allowed
        assert decision.remaining == 2

    def test_unknown_endpoint_uses_default_policy(self):
        limiter = RateLimiter()
        assert limiter.policy_for("nope") == RATE_LIMITS["default"]

    def test_headers_on_allowed_and_denied(self, clock):
        limiter = _limiter(clock)
        allowed = limiter.check("1.2.3.4", "tight").headers()
        assert allowed["X-RateLimit-Limit"] == "3"
        assert allowed["X-RateLimit-Remaining"] == "2"
        assert "Retry-After" not in allowed
        for _ in range(3):
            denied = limiter.check("1.2.3.4", "tight")
        assert denied.headers()["Retry-After"] == "1"


class TestEscalation:
    """Three times the limit inside one window blocks the address."""

    def test_nine_calls_block_address_past_window_reset(self, clock):
        limiter = _limiter(clock)
        for _ in range(9):
            limiter.check("1.2.3.4", "tight")
        assert limiter.is_blocked("1.2.3.4")

        clock.advance(seconds=5)
        decision = limiter.check("1.2.3.4", "tight")
        assert not decision.allowed
        assert decision.retry_after == int(BLOCK_DURATION.total_seconds()) - 5

        # Block applies to every endpoint for that address
        assert not limiter.check("1.2.3.4", "other").allowed

    def test_eight_calls_do_not_block(self, clock):
        limiter = _limiter(clock)
        for _ in range(8):
            limiter.check("1.2.3.4", "tight")
        assert not limiter.is_blocked("1.2.3.4")

    def test_block_lifts_after_duration(self, clock):
        limiter = _limiter(clock)
        for _ in range(9):
            limiter.check("1.2.3.4", "tight")
        clock.advance(hours=1, seconds=1)
        assert limiter.check("1.2.3.4", "tight").allowed

    def test_permanent_blocklist_is_checked_first(self, clock):
        limiter = _limiter(clock, permanent_blocklist=frozenset({"6.6.6.6"}))
        decision = limiter.check("6.6.6.6", "tight")
        assert not decision.allowed
        assert decision.status_code == 403
        assert decision.retry_after is None
        assert limiter.is_blocked("6.6.6.6")


class TestSweep:
    """Housekeeping of stale windows."""

    def test_sweep_drops_old_windows(self, clock):
        limiter = _limiter(clock)
        limiter.check("1.2.3.4", "tight")
        clock.advance(minutes=30)
        limiter.check("5.6.7.8", "tight")
        clock.advance(minutes=31)
        assert limiter.sweep() == 1

    def test_probabilistic_sweep_runs_when_rng_hits(self, clock):
        limiter = RateLimiter(clock=clock, rng=lambda: 0.0)
        limiter.check("1.2.3.4", "default")
        clock.advance(hours=2)
        limiter.check("5.6.7.8", "default")
        # The second call swept the first window, leaving only its own
        assert limiter.sweep() == 0


def _request(headers: dict[str, str], client: tuple[str, int] | None = ("10.0.0.1", 1234)):
    scope = {
        "type": "http",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


class TestClientAddress:
    """Proxy header precedence."""

    def test_forwarded_for_first_hop(self):
        request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2"})
        assert get_client_address(request) == "203.0.113.7"

    def test_client_ip_then_real_ip(self):
        assert get_client_address(_request({"Client-IP": "198.51.100.1"})) == "198.51.100.1"
        assert get_client_address(_request({"X-Real-IP": "198.51.100.2"})) == "198.51.100.2"

    def test_socket_peer_fallback(self):
        assert get_client_address(_request({})) == "10.0.0.1"
        assert get_client_address(_request({}, client=None)) == "unknown"


class TestRateLimitDependency:
    """The dependency on real endpoints."""

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("enable_rate_limiting")
    async def test_verification_endpoint_returns_429_with_retry_after(self, client):
        body = {"email": "press@company.ie"}
        headers = {"X-Forwarded-For": "203.0.113.50"}
        for _ in range(RATE_LIMITS["verify-domain"].requests):
            response = await client.post(
                "/api/v1/verification/request-code", json=body, headers=headers
            )
            assert response.status_code == 200
            assert "X-RateLimit-Remaining" in response.headers

        response = await client.post(
            "/api/v1/verification/request-code", json=body, headers=headers
        )
        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMITED"
        assert int(response.headers["Retry-After"]) > 0

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("enable_rate_limiting")
    async def test_blocked_address_gets_403(self, client, monkeypatch):
        monkeypatch.setattr(
            get_rate_limiter(), "_permanent_blocklist", frozenset({"203.0.113.66"})
        )
        response = await client.post(
            "/api/v1/discounts/validate",
            json={"code": "FRIEND20"},
            headers={"X-Forwarded-For": "203.0.113.66"},
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ADDRESS_BLOCKED"
