"""Deduplicating trigger queue and the single worker draining it."""

from __future__ import annotations

import collections
import logging
import threading
from typing import Callable

from .config import OperatorConfig
from .controller import ReconcileResult
from .logging import log_reconcile_event

logger = logging.getLogger(__name__)


class TriggerQueue:
    """Work queue of CR names with coalescing.

    A key that is already pending is not queued twice. A key added while it
    is being processed is queued again once done() is called, so a trigger
    arriving mid-reconcile is never lost and never runs concurrently.
    """

    def __init__(self) -> None:
        self._queue: collections.deque[str] = collections.deque()
        self._dirty: set[str] = set()
        self._processing: set[str] = set()
        self._timers: set[threading.Timer] = set()
        self._cond = threading.Condition()
        self._shutdown = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def add(self, key: str) -> None:
        with self._cond:
            if self._shutdown or key in self._dirty:
                return
            self._dirty.add(key)
            if key not in self._processing:
                self._queue.append(key)
                self._cond.notify()

    def add_after(self, key: str, delay: float) -> None:
        """Add a key once the delay has passed."""
        if delay <= 0:
            self.add(key)
            return

        def fire() -> None:
            with self._cond:
                self._timers.discard(timer)
            self.add(key)

        timer = threading.Timer(delay, fire)
        timer.daemon = True
        with self._cond:
            if self._shutdown:
                return
            self._timers.add(timer)
        timer.start()

    def get(self, timeout: float | None = None) -> str | None:
        """Take the next key, or None on timeout or shutdown."""
        with self._cond:
            if not self._queue and not self._shutdown:
                self._cond.wait(timeout)
            if self._shutdown or not self._queue:
                return None
            key = self._queue.popleft()
            self._processing.add(key)
            self._dirty.discard(key)
            return key

    def done(self, key: str) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        with self._cond:
            self._shutdown = True
            for timer in self._timers:
                timer.cancel()
            self._timers.clear()
            self._cond.notify_all()


class ReconcileWorker:
    """Runs reconciles one at a time and turns their outcome into requeues.

    A requested requeue_after schedules the key again after that delay. A
    raised error schedules it with exponential backoff, reset by the next
    success.
    """

    def __init__(
        self,
        queue: TriggerQueue,
        reconcile: Callable[[str], ReconcileResult],
        config: OperatorConfig,
    ):
        self.queue = queue
        self.reconcile = reconcile
        self.config = config
        self.failures: dict[str, int] = {}
        self._thread: threading.Thread | None = None
        self._stopped = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def backoff_delay(self, key: str) -> float:
        attempts = self.failures.get(key, 1)
        delay = self.config.min_retry_delay * (self.config.retry_backoff ** (attempts - 1))
        return min(delay, self.config.max_retry_delay)

    def process_next(self, timeout: float | None = None) -> bool:
        """Process one key. Returns False if none was available."""
        key = self.queue.get(timeout)
        if key is None:
            return False
        try:
            result = self.reconcile(key)
        except Exception as e:
            self.failures[key] = self.failures.get(key, 0) + 1
            delay = self.backoff_delay(key)
            log_reconcile_event(
                logger,
                key,
                "error",
                "ReconcileError",
                f"Reconcile failed, retrying in {delay}s: {e}",
                level=logging.ERROR,
                error_type=type(e).__name__,
                attempt=self.failures[key],
            )
            self.queue.add_after(key, delay)
        else:
            self.failures.pop(key, None)
            if result.requeue_after:
                self.queue.add_after(key, result.requeue_after)
        finally:
            self.queue.done(key)
        return True

    def run(self) -> None:
        while not self._stopped.is_set():
            self.process_next(timeout=1.0)

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name="reconcile-worker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        self.queue.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=5)
