"""
Bounded exponential-backoff retry for one logical fetch.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Iterator, List, Optional, Tuple, TypeVar

import aiohttp

from lienscout.core.clock import Clock, system_clock
from lienscout.core.errors import FetchError, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(error: BaseException) -> bool:
    """5xx, 429, network and timeout errors are retryable; everything else is not."""
    if isinstance(error, FetchError):
        return error.retryable
    return isinstance(error, (asyncio.TimeoutError, ConnectionError, aiohttp.ClientError))


def exponential_backoff(
    *,
    max_attempts: int,
    base_delay: float,
    max_delay: float,
    factor: float = 2.0,
) -> Iterator[Tuple[int, float]]:
    """Yield (attempt, delay_after_failure) pairs: base * factor^(attempt-1), capped."""
    delay = base_delay
    for attempt in range(1, max_attempts + 1):
        yield attempt, min(delay, max_delay)
        delay = delay * factor


class RetryPolicy:
    """
    Runs an async callable up to ``attempts`` times.

    Usage:
        policy = RetryPolicy(attempts=3, base_delay=2.0, clock=clock)
        data = await policy.run(lambda: client.fetch(region), source_id="demo-api")

    Non-retryable errors propagate on the first failure unchanged. When every
    attempt fails, RetryExhaustedError is raised with the per-attempt messages.
    """

    def __init__(
        self,
        attempts: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 30.0,
        jitter: float = 0.0,
        clock: Clock = system_clock,
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
    ):
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("delays must be >= 0")
        self.attempts = attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.clock = clock
        self.on_retry = on_retry

    def delay_for(self, attempt: int) -> float:
        """Backoff after the given (1-based) failed attempt, before jitter."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    async def run(self, func: Callable[[], Awaitable[T]], source_id: str = "") -> T:
        attempt_errors: List[str] = []
        last_error: Optional[BaseException] = None

        for attempt, delay in exponential_backoff(
            max_attempts=self.attempts, base_delay=self.base_delay, max_delay=self.max_delay
        ):
            try:
                return await func()
            except Exception as e:
                last_error = e
                attempt_errors.append(f"attempt {attempt}/{self.attempts}: {e}")

                if not is_retryable(e):
                    logger.debug(f"{source_id}: non-retryable error on attempt {attempt}: {e}")
                    raise

                if attempt >= self.attempts:
                    break

                if self.jitter > 0:
                    delay += random.uniform(0, self.jitter)

                if self.on_retry:
                    self.on_retry(attempt, e)
                logger.info(
                    f"Retry {attempt}/{self.attempts} for {source_id or 'fetch'} in {delay:.1f}s: {e}"
                )
                await self.clock.sleep(delay)

        raise RetryExhaustedError(source_id, self.attempts, last_error, attempt_errors) from last_error
