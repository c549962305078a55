"""
Fixed-window, per-IP rate limiting for the measurement endpoints.

A full measurement series issues roughly sixteen requests per cycle, so the
default budget of 200 requests a minute covers ten back-to-back cycles.
Over the budget the middleware answers 429 with ``Retry-After`` and the
``X-RateLimit-*`` headers; allowed responses carry the headers too.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict

from aiohttp import web

logger = logging.getLogger("speedtest.server")

DEFAULT_MAX_REQUESTS = 200
DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_CLEANUP_INTERVAL = 300.0


@dataclass
class _Window:
    count: int
    reset_time: float


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_time: float

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_time)),
        }


DECISION_KEY = web.RequestKey("rate_limit", RateLimitDecision)


class RateLimiter:
    """In-memory request counter keyed by client IP."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._last_cleanup = clock()

    def now(self) -> float:
        return self._clock()

    def check(self, key: str) -> RateLimitDecision:
        now = self._clock()
        self._maybe_cleanup(now)
        window = self._windows.get(key)

        if window is None or now > window.reset_time:
            window = _Window(count=1, reset_time=now + self.window_seconds)
            self._windows[key] = window
            return RateLimitDecision(True, self.max_requests, self.max_requests - 1, window.reset_time)

        if window.count >= self.max_requests:
            return RateLimitDecision(False, self.max_requests, 0, window.reset_time)

        window.count += 1
        return RateLimitDecision(
            True, self.max_requests, self.max_requests - window.count, window.reset_time
        )

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.cleanup_interval:
            return
        self._last_cleanup = now
        expired = [k for k, w in self._windows.items() if now > w.reset_time]
        for key in expired:
            del self._windows[key]

    def __len__(self) -> int:
        return len(self._windows)


# ---------------------------------------------------------------------------
# aiohttp glue
# ---------------------------------------------------------------------------

def client_ip(request: web.Request) -> str:
    """First ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        return first or "unknown"
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.remote or "unknown"


def rate_limit_middleware(limiter: RateLimiter):  # noqa: ANN201
    @web.middleware
    async def middleware(request: web.Request, handler):  # noqa: ANN001
        ip = client_ip(request)
        decision = limiter.check(ip)

        if not decision.allowed:
            retry_after = max(0, math.ceil(decision.reset_time - limiter.now()))
            logger.warning("rate limit exceeded for %s, retry after %ss", ip, retry_after)
            return web.json_response(
                {
                    "error": "Too Many Requests",
                    "message": "Rate limit exceeded. Please try again later.",
                    "retryAfter": retry_after,
                },
                status=429,
                headers={"Retry-After": str(retry_after), **decision.headers()},
            )

        request[DECISION_KEY] = decision
        return await handler(request)

    return middleware


async def add_rate_limit_headers(request: web.Request, response: web.StreamResponse) -> None:
    """``on_response_prepare`` hook; works for streamed responses too."""
    decision = request.get(DECISION_KEY)
    if decision is not None:
        response.headers.update(decision.headers())
