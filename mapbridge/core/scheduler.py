"""Timer scheduling for the single-threaded callback model.

All deferred work (click suppression window, view-settle debounce, icon
dimension polling) goes through a Scheduler so hosts can run it on an asyncio
loop while tests drive a virtual clock.

Times are in milliseconds.
"""

import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class TimerHandle:
    """Handle to a scheduled callback."""

    def __init__(self, due_ms: float, callback: Callable[..., None], args: tuple[Any, ...]) -> None:
        self.due_ms = due_ms
        self._callback = callback
        self._args = args
        self._cancelled = False
        self._native: Optional[asyncio.TimerHandle] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._native is not None:
            self._native.cancel()

    def _run(self) -> None:
        if not self._cancelled:
            self._callback(*self._args)


class Scheduler(ABC):
    """Defers callbacks on the host event loop."""

    @abstractmethod
    def now(self) -> float:
        """Current time in milliseconds."""
        raise NotImplementedError

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[..., None], *args: Any) -> TimerHandle:
        """Run callback(*args) after delay_ms."""
        raise NotImplementedError


class ManualScheduler(Scheduler):
    """Virtual clock; timers run only when advance() moves time past them.

    Example:
        scheduler = ManualScheduler()
        scheduler.call_later(350, fire)
        scheduler.advance(350)  # fire() runs here
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = start_ms
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._sequence = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[..., None], *args: Any) -> TimerHandle:
        handle = TimerHandle(due_ms=self._now + max(0.0, delay_ms), callback=callback, args=args)
        heapq.heappush(self._queue, (handle.due_ms, next(self._sequence), handle))
        return handle

    @property
    def pending(self) -> int:
        """Number of scheduled, uncancelled timers."""
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    def advance(self, ms: float) -> None:
        """Move the clock forward, running every timer that falls due.

        Timers scheduled by running timers also run if they fall due within
        the window. Ties run in scheduling order.
        """
        target = self._now + ms
        while self._queue and self._queue[0][0] <= target:
            due_ms, _, handle = heapq.heappop(self._queue)
            self._now = due_ms
            handle._run()
        self._now = target

    def run_all(self, limit_ms: float = 60_000.0) -> None:
        """Advance until no timers are pending, at most limit_ms."""
        deadline = self._now + limit_ms
        while self.pending and self._now < deadline:
            next_due = min(due for due, _, handle in self._queue if not handle.cancelled)
            self.advance(max(0.0, next_due - self._now))


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop.

    Construct it from inside a running loop, or pass the loop explicitly.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callable[..., None], *args: Any) -> TimerHandle:
        handle = TimerHandle(due_ms=self.now() + delay_ms, callback=callback, args=args)
        handle._native = self._loop.call_later(max(0.0, delay_ms) / 1000.0, handle._run)
        return handle
