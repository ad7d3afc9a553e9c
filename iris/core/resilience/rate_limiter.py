"""
Rate Limiter

Per-client sliding window quotas, checked before any cache or upstream work.

Algorithm:
1. Drop the client's timestamps that fell out of the trailing window
2. If fewer than max_requests remain, record `now` and allow
3. Otherwise reject; the earliest slot frees up at oldest + window

Timestamps older than the window never count toward quota. The window slides
with every call, so there is no burst at fixed window boundaries.
Idle clients are removed by sweep(), run periodically in the background.

Author: Platform Engineering
Date: 2026-02-14
"""

import asyncio
import math
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from iris.core.config.constants import Stage
from iris.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """
    Outcome of one quota check.

    Attributes:
        allowed: Whether the request may proceed
        limit: Requests allowed per window
        remaining: Requests left in the current window after this one
        reset_at: Limiter-clock time when the oldest counted request leaves the window
        reset_after_seconds: Seconds from now until reset_at
        retry_after_seconds: Seconds to wait before retrying (0 when allowed)
    """

    allowed: bool
    client_id: str
    limit: int
    remaining: int
    reset_at: float
    reset_after_seconds: float
    retry_after_seconds: float = 0.0

    def headers(self) -> dict[str, str]:
        """X-RateLimit-* (and Retry-After when rejected) response headers."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(time.time() + self.reset_after_seconds)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(max(1, math.ceil(self.retry_after_seconds)))
        return headers


class SlidingWindowRateLimiter:
    """
    In-memory sliding window rate limiter.

    Usage:
        limiter = SlidingWindowRateLimiter(max_requests=100, window_ms=60000)
        decision = await limiter.check("user:42")
        if not decision.allowed:
            ...
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_ms: float = 60000,
        clock: Callable[[], float] | None = None,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._window_s = window_ms / 1000.0
        self._clock = clock or time.monotonic
        self._clients: dict[str, deque[float]] = {}
        self._lock = asyncio.Lock()
        self._rejected = 0

    @classmethod
    def from_settings(cls, settings, clock=None) -> "SlidingWindowRateLimiter":
        return cls(
            max_requests=settings.rate_limit.RATE_LIMIT_MAX_REQUESTS,
            window_ms=settings.rate_limit.RATE_LIMIT_WINDOW_MS,
            clock=clock,
        )

    def _prune(self, timestamps: deque[float], now: float) -> None:
        cutoff = now - self._window_s
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()

    async def check(self, client_id: str) -> RateLimitDecision:
        """Check the quota and, when allowed, count this request."""
        async with self._lock:
            now = self._clock()
            timestamps = self._clients.setdefault(client_id, deque())
            self._prune(timestamps, now)

            if len(timestamps) < self.max_requests:
                timestamps.append(now)
                reset_at = timestamps[0] + self._window_s
                return RateLimitDecision(
                    allowed=True,
                    client_id=client_id,
                    limit=self.max_requests,
                    remaining=self.max_requests - len(timestamps),
                    reset_at=reset_at,
                    reset_after_seconds=max(0.0, reset_at - now),
                )

            self._rejected += 1
            reset_at = timestamps[0] + self._window_s
            retry_after = max(0.0, reset_at - now)

        logger.warning(
            "Rate limit exceeded",
            stage=Stage.RATE_CHECK,
            client_id=client_id,
            limit=self.max_requests,
            retry_after=round(retry_after, 3),
        )
        return RateLimitDecision(
            allowed=False,
            client_id=client_id,
            limit=self.max_requests,
            remaining=0,
            reset_at=reset_at,
            reset_after_seconds=retry_after,
            retry_after_seconds=retry_after,
        )

    async def allow(self, client_id: str) -> bool:
        return (await self.check(client_id)).allowed

    async def sweep(self) -> int:
        """Forget clients with no requests inside the window. Returns how many were removed."""
        async with self._lock:
            now = self._clock()
            idle = []
            for client_id, timestamps in self._clients.items():
                self._prune(timestamps, now)
                if not timestamps:
                    idle.append(client_id)
            for client_id in idle:
                del self._clients[client_id]
        return len(idle)

    async def reset(self, client_id: str | None = None) -> None:
        async with self._lock:
            if client_id is None:
                self._clients.clear()
            else:
                self._clients.pop(client_id, None)

    def get_stats(self) -> dict[str, Any]:
        total_clients = len(self._clients)
        total_requests = sum(len(ts) for ts in self._clients.values())
        return {
            "total_clients": total_clients,
            "total_requests": total_requests,
            "average_requests_per_client": round(total_requests / total_clients, 2) if total_clients else 0.0,
            "window_ms": self.window_ms,
            "max_requests": self.max_requests,
            "rejected": self._rejected,
        }
