"""Per-IP rate limiter tests."""

import asyncio

import pytest
from starlette.requests import Request

from tradejournal.api.ratelimit import RateLimiter, build_rate_limiter, client_ip


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _request(headers=None, client=("10.0.0.9", 5555)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestRateLimiter:

    @pytest.mark.asyncio
    async def test_burst_then_reject(self):
        limiter = RateLimiter(rps=1, burst=3)
        assert [await limiter.allow("1.1.1.1") for _ in range(4)] == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_ips_are_independent(self):
        limiter = RateLimiter(rps=1, burst=1)
        assert await limiter.allow("1.1.1.1")
        assert not await limiter.allow("1.1.1.1")
        assert await limiter.allow("2.2.2.2")

    @pytest.mark.asyncio
    async def test_concurrent_first_requests_share_state(self):
        limiter = RateLimiter(rps=1, burst=5)
        results = await asyncio.gather(*[limiter.allow("3.3.3.3") for _ in range(20)])
        assert len(limiter) == 1
        assert sum(results) == 5

    @pytest.mark.asyncio
    async def test_idle_visitors_are_evicted(self):
        clock = FakeClock()
        limiter = RateLimiter(rps=1, burst=1, idle_seconds=60, clock=clock)
        await limiter.allow("1.1.1.1")
        clock.now += 30
        await limiter.allow("2.2.2.2")
        assert len(limiter) == 2

        clock.now += 45
        await limiter.allow("2.2.2.2")
        # 1.1.1.1 idle for 75s, 2.2.2.2 for 45s
        assert len(limiter) == 1

    @pytest.mark.asyncio
    async def test_reset_clears_state(self):
        limiter = RateLimiter(rps=1, burst=1)
        await limiter.allow("1.1.1.1")
        assert not await limiter.allow("1.1.1.1")
        await limiter.reset()
        assert len(limiter) == 0
        assert await limiter.allow("1.1.1.1")

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            RateLimiter(rps=0, burst=1)
        assert build_rate_limiter(0, 10, 60) is None


class TestClientIp:

    def test_forwarded_for_first_hop(self):
        req = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "198.51.100.2"})
        assert client_ip(req) == "203.0.113.7"

    def test_forwarded_for_with_port(self):
        assert client_ip(_request({"X-Forwarded-For": "203.0.113.7:4431"})) == "203.0.113.7"

    def test_real_ip_fallback(self):
        assert client_ip(_request({"X-Real-IP": "198.51.100.2"})) == "198.51.100.2"

    def test_socket_peer_fallback(self):
        assert client_ip(_request()) == "10.0.0.9"
