"""
Time source for the pipeline.

Every component that waits or timestamps takes a Clock, so rate-limit waits,
retry backoff and circuit cooldowns can run against virtual time in tests:

    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    await limiter.acquire(source)   # sleeps advance clock.monotonic() instantly
"""
import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional


class Clock:
    """Wall-clock time plus a suspending sleep."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class FakeClock(Clock):
    """
    Virtual clock. sleep() advances time immediately and yields once to the
    event loop, so concurrent waiters still interleave.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._elapsed = 0.0
        self.sleeps: List[float] = []

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def monotonic(self) -> float:
        return self._elapsed

    def advance(self, seconds: float) -> None:
        self._elapsed += max(0.0, seconds)

    async def sleep(self, seconds: float) -> None:
        seconds = max(0.0, seconds)
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)


system_clock = Clock()
