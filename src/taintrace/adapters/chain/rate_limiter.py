import time
import random
from typing import Optional


class SimpleRateLimiter:
    """Courtesy delay between consecutive calls to the same provider."""

    def __init__(self, requests_per_sec: float) -> None:
        if requests_per_sec <= 0:
            raise ValueError("requests_per_sec must be > 0")
        self._min_interval = 1.0 / requests_per_sec
        self._last_ts: Optional[float] = None

    def wait(self) -> None:
        now = time.monotonic()
        if self._last_ts is not None:
            sleep_for = self._min_interval - (now - self._last_ts)
            if sleep_for > 0:
                time.sleep(sleep_for)
        self._last_ts = time.monotonic()


def backoff_sleep(attempt: int, base: float = 0.5, cap: float = 8.0, retry_after: Optional[float] = None) -> None:
    if retry_after is not None and retry_after > 0:
        time.sleep(min(cap, retry_after))
        return
    t = min(cap, base * (2 ** attempt))
    t *= 0.7 + random.random() * 0.6
    time.sleep(t)
