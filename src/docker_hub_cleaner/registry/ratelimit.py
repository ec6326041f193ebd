from __future__ import annotations

import threading
import time
from typing import Callable

from docker_hub_cleaner.exceptions import Cancelled


class TokenBucket:
    """Token bucket limiter shared by every call made through one client.

    ``rate`` permits are added per second up to ``burst``. ``acquire`` blocks
    until a permit is free; the wait is an ``Event.wait`` so setting the
    cancellation event wakes it up immediately.
    """

    def __init__(
        self,
        rate: float,
        burst: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self.rate = rate
        self.burst = burst if burst is not None else max(1, int(rate))
        self._clock = clock
        self._tokens = float(self.burst)
        self._updated = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._updated = now

    def try_acquire(self) -> float:
        """Take a permit if one is available.

        Returns 0 on success, otherwise the number of seconds until the next
        permit becomes available.
        """
        with self._lock:
            self._refill()
            if self._tokens >= 1:
                self._tokens -= 1
                return 0.0
            return (1 - self._tokens) / self.rate

    def acquire(self, cancel: threading.Event | None = None) -> None:
        cancel = cancel or threading.Event()
        while True:
            if cancel.is_set():
                raise Cancelled("cancelled while waiting for a rate limit permit")
            wait = self.try_acquire()
            if wait == 0:
                return
            if cancel.wait(wait):
                raise Cancelled("cancelled while waiting for a rate limit permit")
