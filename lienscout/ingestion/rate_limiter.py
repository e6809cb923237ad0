"""
Per-source sliding-window rate limiter for upstream filing sources.
"""
import asyncio
import logging
from collections import defaultdict, deque
from typing import Deque, Dict, Optional

from lienscout.core.clock import Clock, system_clock

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


class RateLimiter:
    """
    Caps requests per source within a rolling 60s window.

    Each source has an independent budget (its rate_limit_per_minute) and an
    independent lock, so a saturated source never delays another one. Callers
    over budget are suspended until the window admits them, never rejected.
    """

    def __init__(self, clock: Clock = system_clock, window_seconds: float = WINDOW_SECONDS):
        self.clock = clock
        self.window_seconds = window_seconds
        self.limits: Dict[str, int] = {}
        self.usage: Dict[str, Deque[float]] = defaultdict(deque)
        self._locks: Dict[str, asyncio.Lock] = {}

    def configure(self, source_id: str, limit_per_window: int) -> None:
        if limit_per_window < 1:
            raise ValueError(f"Rate limit for {source_id} must be >= 1, got {limit_per_window}")
        self.limits[source_id] = limit_per_window

    def _evict(self, source_id: str, now: float) -> Deque[float]:
        window = self.usage[source_id]
        while window and window[0] <= now - self.window_seconds:
            window.popleft()
        return window

    def allow(self, source_id: str) -> bool:
        """
        Non-blocking check. Records the call and returns True if the source is
        under budget, otherwise returns False without recording anything.
        """
        limit = self.limits.get(source_id)
        if limit is None:
            return True

        now = self.clock.monotonic()
        window = self._evict(source_id, now)
        if len(window) < limit:
            window.append(now)
            return True
        return False

    async def acquire(self, source_id: str) -> float:
        """Wait until the rate limit allows a request. Returns seconds waited."""
        if source_id not in self.limits:
            return 0.0

        lock = self._locks.setdefault(source_id, asyncio.Lock())
        waited = 0.0

        async with lock:
            while not self.allow(source_id):
                now = self.clock.monotonic()
                oldest = self.usage[source_id][0]
                wait_time = max(oldest + self.window_seconds - now, 0.001)
                logger.warning(f"Rate limit reached for {source_id}, waiting {wait_time:.1f}s")
                await self.clock.sleep(wait_time)
                waited += wait_time

        return waited

    def usage_for(self, source_id: str) -> Dict[str, float]:
        """Return current usage stats for a source."""
        limit = self.limits.get(source_id)
        if limit is None:
            return {"used": 0, "limit": 0, "period_seconds": self.window_seconds}

        window = self._evict(source_id, self.clock.monotonic())
        return {
            "used": len(window),
            "limit": limit,
            "period_seconds": self.window_seconds,
        }

    def reset(self, source_id: Optional[str] = None) -> None:
        if source_id is None:
            self.usage.clear()
        else:
            self.usage.pop(source_id, None)
