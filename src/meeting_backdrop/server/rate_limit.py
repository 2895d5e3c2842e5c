"""Per-client sliding-window rate limiter.

Each key owns a deque of the timestamps of its accepted requests. A request
is accepted while fewer than ``max_requests`` timestamps fall inside the
trailing window. ``hit`` never awaits, so under a single event loop the
check-and-record step cannot interleave with another request.
"""
from __future__ import annotations
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

from fastapi import Request


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after_s: float

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil(self.reset_after_s))


class SlidingWindowLimiter:
    def __init__(
        self,
        max_requests: int = 10,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sweep_every: int = 256,
    ) -> None:
        if max_requests < 1 or window_s <= 0:
            raise ValueError("max_requests and window_s must be positive")
        self.max_requests = max_requests
        self.window_s = window_s
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._sweep_every = sweep_every
        self._calls = 0

    def __len__(self) -> int:
        return len(self._hits)

    def _evict(self, stamps: deque[float], now: float) -> None:
        cutoff = now - self.window_s
        while stamps and stamps[0] <= cutoff:
            stamps.popleft()

    def sweep(self) -> None:
        """Drop keys whose timestamps have all aged out."""
        now = self._clock()
        for key in list(self._hits):
            stamps = self._hits[key]
            self._evict(stamps, now)
            if not stamps:
                del self._hits[key]

    def hit(self, key: str) -> RateLimitDecision:
        """Record a request for ``key`` if the window has room."""
        now = self._clock()
        self._calls += 1
        if self._calls % self._sweep_every == 0:
            self.sweep()

        stamps = self._hits.setdefault(key, deque())
        self._evict(stamps, now)

        if len(stamps) >= self.max_requests:
            return RateLimitDecision(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_after_s=stamps[0] + self.window_s - now,
            )

        stamps.append(now)
        return RateLimitDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - len(stamps),
            reset_after_s=stamps[0] + self.window_s - now,
        )

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)


def client_key(request: Request, trust_proxy: bool = False) -> str:
    """
    Identify the caller for rate limiting.

    With ``trust_proxy`` one reverse proxy hop is trusted, so the right-most
    ``X-Forwarded-For`` entry is the client. Callers sharing a NAT or proxy
    share a key.
    """
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
        if hops:
            return hops[-1]
    if request.client is not None:
        return request.client.host
    return "unknown"


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    headers = {
        "RateLimit-Limit": str(decision.limit),
        "RateLimit-Remaining": str(decision.remaining),
        "RateLimit-Reset": str(decision.retry_after),
    }
    if not decision.allowed:
        headers["Retry-After"] = str(decision.retry_after)
    return headers
