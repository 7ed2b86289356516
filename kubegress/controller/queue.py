"""Keyed work queue with a bounded worker pool.

Guarantees at most one in-flight reconciliation per key: a key added while
it is being processed is marked dirty and re-queued once the running pass
finishes, and repeated adds of a waiting key coalesce into one entry.
Distinct keys are processed in parallel, up to the number of workers.

Failed passes are retried with per-key exponential backoff
(``base_delay * 2**failures``, capped at ``max_delay``).  A key is never
abandoned: retries continue until a pass succeeds, or the error declares
itself non-retryable via ``retryable = False``.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

from kubegress.observability.logging import get_logger
from kubegress.observability.metrics import queue_depth

_logger = get_logger("controller.queue")

K = TypeVar("K", bound=Hashable)


class ReconcileQueue(Generic[K]):
    """Coalescing, rate-limited queue drained by ``workers`` coroutines."""

    def __init__(
        self,
        reconcile_fn: Callable[[K], Awaitable[None]],
        workers: int = 4,
        base_delay: float = 0.05,
        max_delay: float = 300.0,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._reconcile_fn = reconcile_fn
        self._worker_count = workers
        self._base_delay = base_delay
        self._max_delay = max_delay

        self._queue: deque[K] = deque()
        self._dirty: set[K] = set()
        self._processing: set[K] = set()
        self._failures: dict[K, int] = {}
        self._timers: dict[K, asyncio.TimerHandle] = {}

        self._wakeup = asyncio.Event()
        self._workers: list[asyncio.Task[None]] = []
        self._shutting_down = False

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def running(self) -> bool:
        return bool(self._workers) and not self._shutting_down

    @property
    def idle(self) -> bool:
        """True when nothing is queued, processing or waiting for a retry."""
        return not self._queue and not self._processing and not self._timers

    async def start(self) -> None:
        """Spawn the worker pool. Returns immediately."""
        if self._workers:
            return
        self._shutting_down = False
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"reconcile-worker-{i}") for i in range(self._worker_count)
        ]
        _logger.info("queue_started", workers=self._worker_count)

    async def stop(self) -> None:
        """Stop admitting work and wait for in-flight passes to finish."""
        if self._shutting_down or not self._workers:
            return
        self._shutting_down = True
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._wakeup.set()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        dropped = len(self._queue)
        self._queue.clear()
        self._dirty.clear()
        queue_depth.set(0)
        _logger.info("queue_stopped", dropped=dropped)

    def add(self, key: K) -> bool:
        """Schedule *key*. Returns False if the queue is shutting down."""
        if self._shutting_down:
            return False
        if key in self._dirty:
            return True
        self._dirty.add(key)
        if key in self._processing:
            return True
        self._queue.append(key)
        queue_depth.set(len(self._queue))
        self._wakeup.set()
        return True

    def add_after(self, key: K, delay: float) -> None:
        """Schedule *key* after *delay* seconds; an earlier pending retry wins."""
        if self._shutting_down:
            return
        if delay <= 0:
            self.add(key)
            return
        if key in self._timers:
            return
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, self._fire_timer, key)

    def add_rate_limited(self, key: K) -> float:
        """Re-schedule *key* with exponential backoff; returns the delay used."""
        failures = self._failures.get(key, 0)
        self._failures[key] = failures + 1
        delay = min(self._base_delay * (2**failures), self._max_delay)
        self.add_after(key, delay)
        return delay

    def forget(self, key: K) -> None:
        """Reset the backoff of *key*."""
        self._failures.pop(key, None)

    def num_requeues(self, key: K) -> int:
        return self._failures.get(key, 0)

    def _fire_timer(self, key: K) -> None:
        self._timers.pop(key, None)
        self.add(key)

    async def _get(self) -> K | None:
        while True:
            if self._shutting_down:
                return None
            if self._queue:
                key = self._queue.popleft()
                queue_depth.set(len(self._queue))
                self._dirty.discard(key)
                self._processing.add(key)
                return key
            self._wakeup.clear()
            await self._wakeup.wait()

    def _done(self, key: K) -> None:
        self._processing.discard(key)
        if key in self._dirty and not self._shutting_down:
            self._queue.append(key)
            queue_depth.set(len(self._queue))
            self._wakeup.set()

    async def _worker(self, index: int) -> None:
        while True:
            key = await self._get()
            if key is None:
                return
            try:
                await self._reconcile_fn(key)
            except Exception as exc:
                if getattr(exc, "retryable", True):
                    delay = self.add_rate_limited(key)
                    _logger.debug(
                        "reconcile_requeued",
                        key=str(key),
                        worker=index,
                        retry_in=round(delay, 3),
                        attempts=self._failures.get(key, 0),
                        error=str(exc),
                    )
                else:
                    self.forget(key)
            else:
                self.forget(key)
            finally:
                self._done(key)
