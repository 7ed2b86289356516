"""Unit tests for the ReconcileQueue.

Tests cover: coalescing, per-key serialization, parallelism across keys,
backoff retries, non-retryable errors, and shutdown.
"""

from __future__ import annotations

import asyncio

import pytest

from kubegress.controller.queue import ReconcileQueue
from tests.factories import eventually

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _Recorder:
    """Reconcile function that records calls and tracks concurrency."""

    def __init__(self, delay: float = 0.0, failures: int = 0, exc: Exception | None = None) -> None:
        self.calls: list[str] = []
        self.delay = delay
        self.failures = failures
        self.exc = exc or RuntimeError("boom")
        self.active: dict[str, int] = {}
        self.max_active_per_key = 0
        self.max_active = 0
        self.gate: asyncio.Event | None = None

    async def __call__(self, key: str) -> None:
        self.calls.append(key)
        self.active[key] = self.active.get(key, 0) + 1
        self.max_active_per_key = max(self.max_active_per_key, self.active[key])
        self.max_active = max(self.max_active, sum(self.active.values()))
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.failures > 0:
                self.failures -= 1
                raise self.exc
        finally:
            self.active[key] -= 1


class _Permanent(Exception):
    retryable = False


# ---------------------------------------------------------------------------
# Coalescing and serialization
# ---------------------------------------------------------------------------


class TestCoalescing:
    async def test_adds_before_start_coalesce(self) -> None:
        fn = _Recorder()
        queue: ReconcileQueue[str] = ReconcileQueue(fn, workers=2)
        for _ in range(5):
            queue.add("a")
        assert len(queue) == 1

        await queue.start()
        try:
            await eventually(lambda: queue.idle)
            assert fn.calls == ["a"]
        finally:
            await queue.stop()

    async def test_add_during_processing_runs_once_more(self) -> None:
        fn = _Recorder()
        fn.gate = asyncio.Event()
        queue: ReconcileQueue[str] = ReconcileQueue(fn, workers=4)
        await queue.start()
        try:
            queue.add("a")
            await eventually(lambda: fn.calls == ["a"])
            # the key is in flight; further adds coalesce into one follow-up pass
            queue.add("a")
            queue.add("a")
            queue.add("a")
            fn.gate.set()
            await eventually(lambda: queue.idle)

            assert fn.calls == ["a", "a"]
            assert fn.max_active_per_key == 1
        finally:
            await queue.stop()

    async def test_distinct_keys_run_in_parallel(self) -> None:
        fn = _Recorder(delay=0.05)
        queue: ReconcileQueue[str] = ReconcileQueue(fn, workers=4)
        await queue.start()
        try:
            for key in ("a", "b", "c", "d"):
                queue.add(key)
            await eventually(lambda: queue.idle)

            assert sorted(fn.calls) == ["a", "b", "c", "d"]
            assert fn.max_active > 1
        finally:
            await queue.stop()

    async def test_worker_count_bounds_parallelism(self) -> None:
        fn = _Recorder(delay=0.02)
        queue: ReconcileQueue[str] = ReconcileQueue(fn, workers=2)
        await queue.start()
        try:
            for i in range(8):
                queue.add(f"k{i}")
            await eventually(lambda: queue.idle)
            assert fn.max_active <= 2
        finally:
            await queue.stop()

    def test_zero_workers_rejected(self) -> None:
        with pytest.raises(ValueError):
            ReconcileQueue(_Recorder(), workers=0)


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------


class TestRetries:
    async def test_failed_key_is_retried_until_success(self) -> None:
        fn = _Recorder(failures=3)
        queue: ReconcileQueue[str] = ReconcileQueue(fn, workers=1, base_delay=0.005, max_delay=0.02)
        await queue.start()
        try:
            queue.add("a")
            await eventually(lambda: len(fn.calls) == 4 and queue.idle)
            assert queue.num_requeues("a") == 0
        finally:
            await queue.stop()

    async def test_non_retryable_error_is_not_requeued(self) -> None:
        fn = _Recorder(failures=1, exc=_Permanent("ambiguous"))
        queue: ReconcileQueue[str] = ReconcileQueue(fn, workers=1, base_delay=0.005)
        await queue.start()
        try:
            queue.add("a")
            await eventually(lambda: queue.idle)
            await asyncio.sleep(0.05)
            assert fn.calls == ["a"]
        finally:
            await queue.stop()

    def test_backoff_grows_and_caps(self) -> None:
        queue: ReconcileQueue[str] = ReconcileQueue(_Recorder(), base_delay=1.0, max_delay=5.0)
        queue._shutting_down = True  # compute delays without scheduling timers
        delays = [queue.add_rate_limited("a") for _ in range(5)]

        assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]
        assert queue.num_requeues("a") == 5
        queue.forget("a")
        assert queue.num_requeues("a") == 0

    async def test_add_after_keeps_earliest_timer(self) -> None:
        fn = _Recorder()
        queue: ReconcileQueue[str] = ReconcileQueue(fn, workers=1)
        await queue.start()
        try:
            queue.add_after("a", 0.01)
            queue.add_after("a", 10.0)
            await eventually(lambda: fn.calls == ["a"])
            await eventually(lambda: queue.idle)
        finally:
            await queue.stop()


# ---------------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------------


class TestShutdown:
    async def test_stop_waits_for_in_flight_pass(self) -> None:
        fn = _Recorder(delay=0.05)
        queue: ReconcileQueue[str] = ReconcileQueue(fn, workers=1)
        await queue.start()
        queue.add("a")
        await eventually(lambda: fn.calls == ["a"])

        await queue.stop()

        assert fn.active["a"] == 0
        assert not queue.running

    async def test_add_after_stop_is_rejected(self) -> None:
        queue: ReconcileQueue[str] = ReconcileQueue(_Recorder(), workers=1)
        await queue.start()
        await queue.stop()
        assert queue.add("a") is False
        assert len(queue) == 0

    async def test_stop_cancels_pending_retries(self) -> None:
        fn = _Recorder(failures=1)
        queue: ReconcileQueue[str] = ReconcileQueue(fn, workers=1, base_delay=10.0)
        await queue.start()
        queue.add("a")
        await eventually(lambda: queue.num_requeues("a") == 1)

        await queue.stop()

        assert queue.idle
        assert fn.calls == ["a"]
