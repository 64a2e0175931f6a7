"""Client side throttling for Kubernetes API calls."""

from __future__ import annotations

import threading
import time

from .. import metrics


class Throttle:
    """Spaces calls at least 1/rate seconds apart.

    This is a QPS limiter for outgoing requests, not a retry mechanism: failed
    requests are never retried here.
    """

    def __init__(self, rate_per_second: float):
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive")
        self.min_interval = 1.0 / rate_per_second
        self._last_call_time = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            current_time = time.monotonic()
            time_since_last_call = current_time - self._last_call_time
            if time_since_last_call < self.min_interval:
                metrics.rate_limit_hits_total.inc()
                time.sleep(self.min_interval - time_since_last_call)
            self._last_call_time = time.monotonic()
