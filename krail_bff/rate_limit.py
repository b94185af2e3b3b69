import threading
import time
from typing import Callable


class TokenBucket:
    """Global admission limiter: ``capacity`` burst, refilled at ``refill_per_sec``."""

    def __init__(
        self,
        capacity: int,
        refill_per_sec: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.capacity = max(1, capacity)
        self.refill_per_sec = max(0.0, refill_per_sec)
        self._clock = clock
        self._tokens = float(self.capacity)
        self._last_refill = clock()
        self._lock = threading.Lock()

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill
        if elapsed <= 0:
            return
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.refill_per_sec)
        self._last_refill = now

    def allow(self) -> bool:
        now = self._clock()
        with self._lock:
            self._refill(now)
            if self._tokens < 1.0:
                return False
            self._tokens -= 1.0
            return True

    @property
    def available(self) -> float:
        now = self._clock()
        with self._lock:
            self._refill(now)
            return self._tokens
