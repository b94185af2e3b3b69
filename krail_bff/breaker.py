import logging
import threading
import time
from typing import Callable, Optional

log = logging.getLogger(__name__)

RESULT_SUCCESS = "success"
RESULT_UPSTREAM_4XX = "upstream_4xx"
RESULT_UPSTREAM_5XX = "upstream_5xx"
RESULT_EXCEPTION = "exception"
RESULT_SKIPPED = "skipped"


def classify_failure(status: Optional[int]) -> str:
    if status is not None:
        if 400 <= status <= 499:
            return RESULT_UPSTREAM_4XX
        if 500 <= status <= 599:
            return RESULT_UPSTREAM_5XX
    return RESULT_EXCEPTION


class CircuitBreaker:
    """Consecutive-failure breaker with a timed lockout and no half-open probe.

    Reaching the threshold opens the breaker for ``reset_timeout_sec`` and
    clears the counter, so the next closed period starts clean.
    """

    def __init__(
        self,
        failure_threshold: int,
        reset_timeout_sec: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = max(1, failure_threshold)
        self.reset_timeout_sec = max(0.0, reset_timeout_sec)
        self._clock = clock
        self._failures = 0
        self._open_until = float("-inf")
        self._lock = threading.Lock()

    @property
    def failures(self) -> int:
        with self._lock:
            return self._failures

    @property
    def is_open(self) -> bool:
        return not self.allow()

    def allow(self) -> bool:
        now = self._clock()
        with self._lock:
            return now >= self._open_until

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0

    def record_failure(self) -> bool:
        now = self._clock()
        with self._lock:
            self._failures += 1
            if self._failures < self.failure_threshold:
                return False
            self._open_until = now + self.reset_timeout_sec
            self._failures = 0
        log.warning(
            "Circuit opened after %d consecutive failures for %.1fs",
            self.failure_threshold,
            self.reset_timeout_sec,
        )
        return True
