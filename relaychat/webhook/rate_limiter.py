"""In-memory sliding window rate limiter keyed by client address."""

from __future__ import annotations

import math
import time


class SlidingWindowLimiter:
    """Sliding window rate limiter per client key.

    Default: 30 requests per 60 seconds per key (relay endpoints).
    """

    def __init__(
        self,
        max_requests: int = 30,
        window_seconds: int = 60,
    ) -> None:
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._hits: dict[str, list[float]] = {}
        self._last_sweep = 0.0

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def _live_hits(self, key: str, now: float) -> list[float]:
        cutoff = now - self._window_seconds
        hits = [t for t in self._hits.get(key, []) if t > cutoff]
        if hits:
            self._hits[key] = hits
        else:
            self._hits.pop(key, None)
        return hits

    def _sweep(self, now: float) -> None:
        """Drop keys idle for a full window, at most once per window."""
        if now - self._last_sweep < self._window_seconds:
            return
        self._last_sweep = now
        cutoff = now - self._window_seconds
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]

    def check(self, key: str) -> bool:
        """Record a hit and return True if ``key`` is still within its limit."""
        now = time.time()
        self._sweep(now)
        hits = self._live_hits(key, now)
        if len(hits) >= self._max_requests:
            return False
        hits.append(now)
        self._hits[key] = hits
        return True

    def remaining(self, key: str) -> int:
        hits = self._live_hits(key, time.time())
        return max(self._max_requests - len(hits), 0)

    def retry_after(self, key: str) -> int:
        """Seconds until the oldest hit for ``key`` leaves the window."""
        now = time.time()
        hits = self._live_hits(key, now)
        if len(hits) < self._max_requests:
            return 0
        return max(math.ceil(hits[0] + self._window_seconds - now), 1)
