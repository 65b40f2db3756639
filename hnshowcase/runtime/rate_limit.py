"""Thread-safe request pacing."""

from __future__ import annotations

import logging
import threading
import time

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window rate limiter shared by worker threads.

    ``RateLimiter(max_calls=1, time_window=delay)`` gives a fixed politeness
    delay between consecutive requests. A non-positive window disables pacing.
    """

    def __init__(self, max_calls: int = 1, time_window: float = 1.0):
        self.max_calls = max(1, int(max_calls))
        self.time_window = float(time_window)
        self.calls = []
        self.lock = threading.Lock()

    @classmethod
    def every(cls, delay: float) -> "RateLimiter":
        return cls(max_calls=1, time_window=delay)

    def wait_if_needed(self) -> None:
        """Wait if rate limit would be exceeded"""
        if self.time_window <= 0:
            return
        with self.lock:
            now = time.monotonic()
            self.calls = [call_time for call_time in self.calls if now - call_time < self.time_window]

            if len(self.calls) >= self.max_calls:
                sleep_time = self.time_window - (now - self.calls[0])
                if sleep_time > 0:
                    logger.debug(f"Pacing requests, waiting {sleep_time:.2f} seconds")
                    time.sleep(sleep_time)
                    now = time.monotonic()
                    self.calls = [call_time for call_time in self.calls if now - call_time < self.time_window]

            self.calls.append(now)
