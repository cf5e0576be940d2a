"""
Rate-limited task queue for outbound exchange calls.

Each exchange gets one ``ThrottledTaskQueue``. Callers submit zero-argument
callables with :meth:`ThrottledTaskQueue.add` and get a
``concurrent.futures.Future`` back immediately. A background drain thread runs
the pending tasks in FIFO batches of ``batch_size``, with at least
``min_batch_interval_ms`` between the starts of consecutive batches:

    batch 1 ──run──┐ sleep(max(0, interval - elapsed)) ┌─ batch 2 ──run──┐ …

Usage::

    queue = ThrottledTaskQueue("BINANCE_QUEUE", batch_size=2, min_batch_interval_ms=600)
    future = queue.add(lambda: adapter.fetch_funding_rate(coin, 400))
    outcome = future.result()
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Optional, TypeVar

from market_snapshots.core.config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_DELAY_MS,
    Settings,
)
from market_snapshots.core.timeframes import EXCHANGES

T = TypeVar("T")


class ThrottledTaskQueue:
    """
    FIFO queue that executes tasks in fixed-size concurrent batches.

    Parameters
    ----------
    label : str
        Name used in log lines and worker thread names.
    batch_size : int
        Number of tasks run concurrently per batch.
    min_batch_interval_ms : int
        Minimum time between the starts of two consecutive batches.
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    sleep : callable, optional
        Sleep function (seconds); injectable for tests.
    """

    def __init__(
        self,
        label: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        min_batch_interval_ms: int = DEFAULT_DELAY_MS,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.label = label
        self.batch_size = batch_size
        self.min_batch_interval_ms = min_batch_interval_ms
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep

        # Guarded by _lock. add() only appends; only _drain() pops.
        self._pending: deque[tuple[Callable[[], object], Future]] = deque()
        self._draining = False
        self._lock = threading.Lock()

        self._executor = ThreadPoolExecutor(
            max_workers=batch_size,
            thread_name_prefix=label.lower(),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def add(self, task: Callable[[], T]) -> "Future[T]":
        """Enqueue *task* and return a future for its result."""
        future: Future = Future()
        with self._lock:
            self._pending.append((task, future))
            start_draining = not self._draining
            if start_draining:
                self._draining = True

        if start_draining:
            threading.Thread(
                target=self._drain,
                name=f"{self.label.lower()}-drain",
                daemon=True,
            ).start()
        return future

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def is_draining(self) -> bool:
        with self._lock:
            return self._draining

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    self._draining = False
                    break
                size = min(self.batch_size, len(self._pending))
                batch = [self._pending.popleft() for _ in range(size)]

            started = time.monotonic()
            running = [
                self._executor.submit(self._run_task, task, future)
                for task, future in batch
            ]
            wait(running)
            elapsed_ms = (time.monotonic() - started) * 1000

            with self._lock:
                more = bool(self._pending)
            remaining_ms = self.min_batch_interval_ms - elapsed_ms
            if more and remaining_ms > 0:
                self._sleep(remaining_ms / 1000)

        self.logger.info(f"[{self.label}] Queue is empty.")

    @staticmethod
    def _run_task(task: Callable[[], object], future: Future) -> None:
        """Run one task and relay its outcome to *future* only."""
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = task()
        except Exception as exc:
            future.set_exception(exc)
        except BaseException as exc:
            # Every future resolves, even on SystemExit or KeyboardInterrupt.
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)


def build_exchange_queues(
    settings: Settings,
    logger: Optional[logging.Logger] = None,
) -> dict[str, ThrottledTaskQueue]:
    """Create one queue per supported exchange from the throttling settings."""
    return {
        exchange: ThrottledTaskQueue(
            label=f"{exchange.upper()}_QUEUE",
            batch_size=settings.throttling.batch_size,
            min_batch_interval_ms=settings.throttling.delay_for(exchange),
            logger=logger,
        )
        for exchange in EXCHANGES
    }
