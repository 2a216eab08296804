import logging
import threading
import time
from typing import Callable


logger = logging.getLogger(__name__)


class BreakerState:
    def __init__(self, consecutive_failures: int = 0, available: bool = True) -> None:
        self.consecutive_failures = consecutive_failures
        self.available = available

    def __repr__(self) -> str:
        return (
            f"<BreakerState(failures={self.consecutive_failures}, "
            f"available={self.available})>"
        )


class AvailabilityBreaker:
    """Counts consecutive model failures and opens at `threshold`.

    While open, `is_available` is False until `retry_after` seconds have passed.
    The first caller after that gets True and owns the single trial call; every
    other caller sees False until that call records its outcome. One success
    closes the breaker again; a failed trial re-arms the cool-down.
    """

    def __init__(
        self,
        threshold: int = 3,
        *,
        retry_after: float | None = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.threshold = threshold
        self.retry_after = retry_after
        self._clock = clock
        self._state = BreakerState()
        self._opened_at: float | None = None
        self._trial_in_flight = False
        self._lock = threading.Lock()

    @property
    def state(self) -> BreakerState:
        with self._lock:
            return BreakerState(
                self._state.consecutive_failures, self._state.available
            )

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._state.consecutive_failures

    def is_available(self) -> bool:
        with self._lock:
            if self._state.available:
                return True
            if self.retry_after is None or self._opened_at is None:
                return False
            if self._trial_in_flight:
                return False
            if self._clock() - self._opened_at < self.retry_after:
                return False
            self._trial_in_flight = True
            return True

    def record_failure(self) -> None:
        with self._lock:
            self._state.consecutive_failures += 1
            if self._state.consecutive_failures >= self.threshold:
                if self._state.available:
                    logger.warning(
                        "Model marked unavailable after %d consecutive failures",
                        self._state.consecutive_failures,
                    )
                self._state.available = False
                self._opened_at = self._clock()
            self._trial_in_flight = False

    def record_success(self) -> None:
        with self._lock:
            if not self._state.available:
                logger.info("Model available again")
            self._state.consecutive_failures = 0
            self._state.available = True
            self._opened_at = None
            self._trial_in_flight = False
