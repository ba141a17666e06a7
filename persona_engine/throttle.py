"""
Pacing policies for sequential model calls.

The enrichment pipeline asks its throttle to wait before every item after the
first. The clock and sleep functions are injectable so tests never sleep.
"""
import time
from typing import Callable


class Throttle:
    """No pacing at all."""

    def wait(self) -> float:
        """Block until the next call may start. Returns the seconds slept."""
        return 0.0


class FixedDelayThrottle(Throttle):
    """Sleep a fixed interval between consecutive calls."""

    def __init__(self, delay_s: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.delay_s = max(0.0, delay_s)
        self._sleep = sleep

    def wait(self) -> float:
        if self.delay_s > 0:
            self._sleep(self.delay_s)
        return self.delay_s


class TokenBucketThrottle(Throttle):
    """
    Allow bursts of up to `capacity` calls, refilled at `rate_per_minute`.

    Sleeps only when the bucket is empty.
    """

    def __init__(
        self,
        rate_per_minute: float = 60,
        capacity: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if rate_per_minute <= 0:
            raise ValueError("rate_per_minute must be positive")
        self.rate_per_second = rate_per_minute / 60.0
        self.capacity = max(1, capacity)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self.capacity)
        self._updated = clock()

    def _refill(self):
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate_per_second)
        self._updated = now

    def wait(self) -> float:
        self._refill()
        slept = 0.0
        if self._tokens < 1:
            slept = (1 - self._tokens) / self.rate_per_second
            self._sleep(slept)
            self._refill()
            # a fake sleep may not advance the clock
            self._tokens = max(self._tokens, 1.0)
        self._tokens -= 1
        return slept
