"""Clocks and periodic callbacks that drive the timer's tick loop."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
import heapq
import itertools
import logging
import time
from typing import Any, Protocol

LOGGER = logging.getLogger(__name__)


def wall_clock_ms() -> int:
    """Milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class IntervalHandle(Protocol):
    def cancel(self) -> None: ...


class IntervalScheduler(Protocol):
    """What the timer needs: a clock and a repeating callback."""

    def now(self) -> int: ...

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> IntervalHandle: ...


def _validate_interval(interval_ms: int) -> None:
    if interval_ms <= 0:
        raise ValueError(f"Interval must be positive, got {interval_ms!r} ms.")


class AsyncioInterval:
    """Repeating callback backed by a single asyncio task."""

    def __init__(self, task: asyncio.Task[Any]) -> None:
        self._task = task

    @property
    def task(self) -> asyncio.Task[Any]:
        return self._task

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled() or self._task.done()

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()


class AsyncioIntervalScheduler:
    """Run interval callbacks as tasks on the running event loop."""

    def __init__(self, clock: Callable[[], int] = wall_clock_ms) -> None:
        self._clock = clock

    def now(self) -> int:
        return self._clock()

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> AsyncioInterval:
        _validate_interval(interval_ms)
        task = asyncio.get_running_loop().create_task(self._run(interval_ms, callback))
        task.add_done_callback(self._log_task_exception)
        return AsyncioInterval(task)

    @staticmethod
    async def _run(interval_ms: int, callback: Callable[[], None]) -> None:
        """Call ``callback`` every ``interval_ms`` until the task is cancelled.

        A failing callback is logged and the interval keeps running, so the
        owner never holds a handle to a dead loop.
        """
        delay = interval_ms / 1000
        while True:
            await asyncio.sleep(delay)
            try:
                callback()
            except Exception as exc:  # noqa: BLE001 - keep the interval alive.
                LOGGER.error(
                    "scheduling.interval.callback_failed",
                    exc_info=exc,
                    extra={
                        "event": "scheduling.interval.callback_failed",
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )

    @staticmethod
    def _log_task_exception(task: asyncio.Task[Any]) -> None:
        """Log an interval task that ended with an error instead of being cancelled."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error(
                "scheduling.interval.exception",
                exc_info=exc,
                extra={
                    "event": "scheduling.interval.exception",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )


@dataclass
class ManualInterval:
    interval_ms: int
    callback: Callable[[], None]
    due: int
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic clock for tests and replays; time only moves on :meth:`advance`."""

    def __init__(self, start_ms: int = 1_000_000) -> None:
        self._now = start_ms
        self._queue: list[tuple[int, int, ManualInterval]] = []
        self._sequence = itertools.count()

    def now(self) -> int:
        return self._now

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> ManualInterval:
        _validate_interval(interval_ms)
        entry = ManualInterval(interval_ms, callback, self._now + interval_ms)
        heapq.heappush(self._queue, (entry.due, next(self._sequence), entry))
        return entry

    @property
    def pending(self) -> int:
        return sum(1 for _, _, entry in self._queue if not entry.cancelled)

    def advance(self, ms: int) -> None:
        """Move the clock forward, firing each due callback at its own due time."""
        if ms < 0:
            raise ValueError("Cannot move the clock backwards.")
        target = self._now + ms
        while self._queue and self._queue[0][0] <= target:
            due, _, entry = heapq.heappop(self._queue)
            if entry.cancelled:
                continue
            self._now = due
            entry.due = due + entry.interval_ms
            heapq.heappush(self._queue, (entry.due, next(self._sequence), entry))
            entry.callback()
        self._now = target
