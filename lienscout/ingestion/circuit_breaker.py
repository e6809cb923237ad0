"""
Circuit breaker pattern for upstream filing sources.

States:
- CLOSED: normal operation, calls pass through; consecutive failures are counted
- OPEN: calls fail immediately with CircuitOpenError until the cooldown elapses
- HALF_OPEN: exactly one trial call is let through; its outcome closes or re-opens

One breaker per source, so a failing upstream cannot burn the retry budget of
the others.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from lienscout.core.clock import Clock, system_clock
from lienscout.core.data_types import CircuitState
from lienscout.core.errors import CircuitOpenError
from lienscout.core.models import CircuitStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitBreaker:

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        cooldown_seconds: float = 30.0,
        clock: Clock = system_clock,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.name = name
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self._status = CircuitStatus.CLOSED
        self.consecutive_failures = 0
        self.opened_at: Optional[float] = None
        self._trial_in_flight = False

    # --- State ---

    def _cooldown_elapsed(self) -> bool:
        if self.opened_at is None:
            return True
        return self.clock.monotonic() - self.opened_at >= self.cooldown_seconds

    @property
    def status(self) -> CircuitStatus:
        """Current status; an open circuit past its cooldown reports half-open."""
        if self._status == CircuitStatus.OPEN and self._cooldown_elapsed():
            return CircuitStatus.HALF_OPEN
        return self._status

    @property
    def state(self) -> CircuitState:
        return CircuitState(
            status=self.status,
            consecutive_failures=self.consecutive_failures,
            opened_at=self.opened_at,
        )

    def stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "consecutive_failures": self.consecutive_failures,
            "opened_at": self.opened_at,
            "failure_threshold": self.failure_threshold,
            "cooldown_seconds": self.cooldown_seconds,
        }

    # --- Gate ---

    def allow(self) -> bool:
        """
        Reserve permission for one call. In HALF_OPEN only one caller at a time
        gets True until that trial's outcome is recorded.
        """
        if self._status == CircuitStatus.CLOSED:
            return True

        if self._status == CircuitStatus.OPEN:
            if not self._cooldown_elapsed():
                return False
            self._status = CircuitStatus.HALF_OPEN
            logger.info(f"{self.name}: cooldown elapsed, circuit half-open")

        if self._trial_in_flight:
            return False
        self._trial_in_flight = True
        return True

    def retry_after(self) -> float:
        if self.opened_at is None:
            return 0.0
        return max(0.0, self.opened_at + self.cooldown_seconds - self.clock.monotonic())

    def record_success(self) -> None:
        if self._status == CircuitStatus.HALF_OPEN:
            logger.info(f"{self.name}: trial call succeeded, circuit closed")
        self._status = CircuitStatus.CLOSED
        self.consecutive_failures = 0
        self.opened_at = None
        self._trial_in_flight = False

    def record_failure(self) -> None:
        self.consecutive_failures += 1

        if self._status == CircuitStatus.HALF_OPEN:
            self._open()
            logger.warning(f"{self.name}: trial call failed, circuit re-opened")
        elif self._status == CircuitStatus.CLOSED and self.consecutive_failures >= self.failure_threshold:
            self._open()
            logger.warning(f"{self.name}: circuit opened after {self.consecutive_failures} consecutive failures")

        self._trial_in_flight = False

    def _open(self) -> None:
        self._status = CircuitStatus.OPEN
        self.opened_at = self.clock.monotonic()

    # --- Wrapper ---

    async def call(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run func under circuit protection. Raises CircuitOpenError without calling func when open."""
        if not self.allow():
            raise CircuitOpenError(self.name, retry_after_seconds=self.retry_after())

        try:
            result = await func()
        except Exception:
            self.record_failure()
            raise
        except BaseException:
            # cancelled mid-call: no verdict, release the half-open slot
            self._trial_in_flight = False
            raise
        self.record_success()
        return result

    # --- Manual control ---

    def reset(self) -> None:
        self._status = CircuitStatus.CLOSED
        self.consecutive_failures = 0
        self.opened_at = None
        self._trial_in_flight = False
        logger.info(f"{self.name}: circuit manually reset")

    def trip(self) -> None:
        self._open()
        self._trial_in_flight = False
        logger.warning(f"{self.name}: circuit manually tripped")
