from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass

from config.settings import settings


@dataclass
class ThrottleDecision:
    allowed: bool
    remaining: int
    retry_after: int  # seconds until the oldest counted request leaves the window


class RequestThrottle:
    """Sliding-window request counter keyed by client identity.

    Timestamps are supplied by the caller (seconds, any monotonic origin).
    Expired entries are evicted on access; idle clients are swept at most once
    per window.
    """

    def __init__(
        self,
        max_requests: int | None = None,
        window_seconds: float | None = None,
    ) -> None:
        self._max = max_requests if max_requests is not None else settings.RATE_LIMIT_MAX_REQUESTS
        self._window = float(
            window_seconds if window_seconds is not None else settings.RATE_LIMIT_WINDOW_SECONDS
        )
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep: float | None = None

    def check(self, client_id: str, now: float) -> ThrottleDecision:
        self._maybe_sweep(now)

        hits = self._hits.setdefault(client_id, deque())
        self._evict(hits, now)

        if len(hits) >= self._max:
            retry_after = max(1, math.ceil(hits[0] + self._window - now))
            return ThrottleDecision(allowed=False, remaining=0, retry_after=retry_after)

        hits.append(now)
        return ThrottleDecision(
            allowed=True,
            remaining=self._max - len(hits),
            retry_after=0,
        )

    def tracked_clients(self) -> int:
        return len(self._hits)

    def _evict(self, hits: deque[float], now: float) -> None:
        floor = now - self._window
        while hits and hits[0] <= floor:
            hits.popleft()

    def _maybe_sweep(self, now: float) -> None:
        if self._last_sweep is not None and now - self._last_sweep < self._window:
            return
        self._last_sweep = now
        for client_id in list(self._hits):
            hits = self._hits[client_id]
            self._evict(hits, now)
            if not hits:
                del self._hits[client_id]
