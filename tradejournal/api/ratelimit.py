"""
Per-client-IP request rate limiting.

Each IP gets its own AsyncLimiter holding ``burst`` tokens that refill at
``rps`` per second. A single asyncio.Lock covers both creating an IP's
limiter and taking a token from it, so concurrent first requests from one IP
share one limiter. IPs idle longer than ``idle_seconds`` are dropped by a
sweep that runs at most once per idle period.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from aiolimiter import AsyncLimiter
from starlette.requests import Request

from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)

RATE_LIMIT_EXCEEDED = "rate limit exceeded"


@dataclass
class _Visitor:
    limiter: AsyncLimiter
    last_seen: float


class RateLimiter:

    def __init__(self, rps: float, burst: int, idle_seconds: float = 600.0,
                 clock: Callable[[], float] = time.monotonic):
        if rps <= 0 or burst < 1:
            raise ValueError("rate limit rps must be > 0 and burst >= 1")
        self._rps = rps
        self._burst = burst
        self._idle_seconds = idle_seconds
        self._clock = clock
        self._visitors: Dict[str, _Visitor] = {}
        self._lock = asyncio.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._visitors)

    def _new_limiter(self) -> AsyncLimiter:
        return AsyncLimiter(max_rate=self._burst, time_period=self._burst / self._rps)

    async def allow(self, ip: str) -> bool:
        """Take one token for ``ip``; False when the bucket is empty."""
        async with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self._idle_seconds:
                self._sweep(now)

            visitor = self._visitors.get(ip)
            if visitor is None:
                visitor = _Visitor(limiter=self._new_limiter(), last_seen=now)
                self._visitors[ip] = visitor
            visitor.last_seen = now

            if not visitor.limiter.has_capacity():
                return False
            await visitor.limiter.acquire()
            return True

    def _sweep(self, now: float) -> None:
        stale = [ip for ip, v in self._visitors.items() if now - v.last_seen > self._idle_seconds]
        for ip in stale:
            del self._visitors[ip]
        self._last_sweep = now
        if stale:
            logger.debug("rate_limiter_swept", evicted=len(stale), remaining=len(self._visitors))

    async def sweep(self) -> None:
        async with self._lock:
            self._sweep(self._clock())

    async def reset(self) -> None:
        async with self._lock:
            self._visitors.clear()
            self._last_sweep = self._clock()


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return _strip_port(first)
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if request.client is not None:
        return request.client.host
    return "unknown"


def _strip_port(addr: str) -> str:
    # "[::1]:443" or "1.2.3.4:80"; bare IPv6 is returned untouched
    if addr.startswith("["):
        end = addr.find("]")
        return addr[1:end] if end > 0 else addr
    if addr.count(":") == 1:
        return addr.split(":", 1)[0]
    return addr


def build_rate_limiter(rps: float, burst: int, idle_seconds: float) -> Optional[RateLimiter]:
    if rps <= 0:
        logger.info("rate_limiter_disabled")
        return None
    return RateLimiter(rps=rps, burst=max(burst, 1), idle_seconds=idle_seconds)
