"""
Throttling for package-manager invocations.

A RateLimiter is created by whoever owns a run (the CLI, a test) and handed
to the components that spawn external commands; there is no process-wide
instance.
"""

import time
from threading import Lock


class RateLimiter:
    """
    Enforces a minimum interval between consecutive calls.
    """

    def __init__(self, min_interval_ms=50, clock=time.monotonic, sleep=time.sleep):
        """
        Initialize the rate limiter.

        Args:
            min_interval_ms (int): Minimum time between calls in milliseconds.
            clock (callable, optional): Monotonic clock returning seconds.
            sleep (callable, optional): Sleep function taking seconds.
        """
        self.min_interval = max(0, min_interval_ms) / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._last_call = None
        self._lock = Lock()

    def throttle(self):
        """
        Block until at least min_interval has passed since the previous call.

        Returns:
            float: Seconds spent waiting.
        """
        with self._lock:
            waited = 0.0
            now = self._clock()
            if self._last_call is not None:
                elapsed = now - self._last_call
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    self._sleep(waited)
                    now = self._clock()
            self._last_call = now
            return waited


class NullRateLimiter(RateLimiter):
    """Rate limiter that never waits."""

    def __init__(self):
        super().__init__(min_interval_ms=0)

    def throttle(self):
        return 0.0
