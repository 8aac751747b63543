"""Coalescing scheduler: a trailing-edge debounce primitive.

Bursts of ``Debouncer.trigger()`` calls collapse into one callback that
runs ``delay`` seconds after the last trigger. Timers come from a
``Scheduler``: ``ThreadingScheduler`` for real use, ``ManualScheduler``
(a virtual clock advanced explicitly) for tests.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)

_Callback = Callable[[], None]


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Source of one-shot timers."""

    def call_later(self, delay: float, callback: _Callback) -> Cancellable: ...


class ThreadingScheduler:
    """Timers backed by daemon ``threading.Timer`` threads."""

    def __init__(self, name: str = "favkit-timer") -> None:
        self._name = name

    def call_later(self, delay: float, callback: _Callback) -> Cancellable:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.name = self._name
        timer.start()
        return timer


class _ManualTimer:
    __slots__ = ("due", "seq", "callback", "cancelled")

    def __init__(self, due: float, seq: int, callback: _Callback) -> None:
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: _ManualTimer) -> bool:
        return (self.due, self.seq) < (other.due, other.seq)


class ManualScheduler:
    """Virtual clock. Timers fire only inside ``advance()``.

    Args:
        start: Initial clock value in seconds.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._heap: list[_ManualTimer] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: _Callback) -> Cancellable:
        with self._lock:
            timer = _ManualTimer(self._now + max(delay, 0.0), next(self._seq), callback)
            heapq.heappush(self._heap, timer)
        return timer

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing due timers in order.

        Timers scheduled by callbacks fire too if they fall due within
        the window.

        Returns:
            Number of callbacks run.
        """
        target = self._now + seconds
        fired = 0
        while True:
            with self._lock:
                while self._heap and self._heap[0].cancelled:
                    heapq.heappop(self._heap)
                if not self._heap or self._heap[0].due > target:
                    break
                timer = heapq.heappop(self._heap)
                self._now = timer.due
            timer.callback()
            fired += 1
        self._now = target
        return fired

    @property
    def pending(self) -> int:
        """Number of live timers."""
        with self._lock:
            return sum(1 for t in self._heap if not t.cancelled)


class Debouncer:
    """Trailing-edge debounce around a callback.

    Each ``trigger()`` supersedes the pending timer, so the callback runs
    once per quiescent period. Callback exceptions are logged, never
    raised into the timer thread.

    Args:
        delay: Quiescence window in seconds.
        callback: Work to run once the window closes.
        scheduler: Timer source. Defaults to ``ThreadingScheduler``.
    """

    def __init__(
        self,
        delay: float,
        callback: _Callback,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._delay = delay
        self._callback = callback
        self._scheduler: Scheduler = scheduler or ThreadingScheduler()
        self._lock = threading.Lock()
        self._handle: Cancellable | None = None
        self._generation = 0
        self._pending = False

    def trigger(self) -> None:
        """Schedule the callback, replacing any pending schedule."""
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            generation = self._generation
            self._pending = True
            self._handle = self._scheduler.call_later(self._delay, lambda: self._fire(generation))

    def flush(self) -> bool:
        """Run a pending callback now.

        Returns:
            True if a callback was pending and has run.
        """
        with self._lock:
            if not self._pending:
                return False
            self._take_pending()
        self._run()
        return True

    def cancel(self) -> None:
        """Drop the pending callback without running it."""
        with self._lock:
            self._take_pending()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending

    def _take_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = False
        self._generation += 1

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A timer thread may already be running when it is superseded
            if generation != self._generation or not self._pending:
                return
            self._handle = None
            self._pending = False
        self._run()

    def _run(self) -> None:
        try:
            self._callback()
        except Exception:
            logger.exception("Error in debounced callback")
