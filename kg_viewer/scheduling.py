"""
Host clock abstraction for the layout animation loop.

The adapter never sleeps or spawns threads. It asks a scheduler to run a
callback later and keeps the returned handle so ``destroy()`` can cancel
it. Anything with ``call_later(delay, callback) -> handle`` where the
handle has ``cancel()`` qualifies, an ``asyncio`` event loop included.

Two schedulers ship here:
  - ImmediateScheduler: runs callbacks as soon as the current one returns
    (trampolined, so long animations do not recurse). Used headless.
  - ManualScheduler: callbacks wait until the host calls ``advance``.
    Used by UI hosts that own their own frame clock, and by tests.
"""

from __future__ import annotations

import heapq
import itertools
from collections import deque
from typing import Callable, Deque, List, Protocol, Tuple


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle: ...


class _Handle:
    __slots__ = ("callback", "cancelled")

    def __init__(self, callback: Callable[[], None]) -> None:
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ImmediateScheduler:
    """Runs every callback synchronously, in submission order, ignoring delays."""

    def __init__(self) -> None:
        self._queue: Deque[_Handle] = deque()
        self._draining = False

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Handle:
        handle = _Handle(callback)
        self._queue.append(handle)
        if not self._draining:
            self._drain()
        return handle

    def _drain(self) -> None:
        self._draining = True
        try:
            while self._queue:
                handle = self._queue.popleft()
                if not handle.cancelled:
                    handle.callback()
        finally:
            self._draining = False


class ManualScheduler:
    """Deterministic clock advanced explicitly by the host."""

    def __init__(self) -> None:
        self.now = 0.0
        self._heap: List[Tuple[float, int, _Handle]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Handle:
        handle = _Handle(callback)
        heapq.heappush(self._heap, (self.now + max(0.0, float(delay)), next(self._seq), handle))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._heap if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running everything that falls due. Returns callbacks run."""
        deadline = self.now + max(0.0, float(seconds))
        ran = 0
        while self._heap and self._heap[0][0] <= deadline:
            due, _, handle = heapq.heappop(self._heap)
            self.now = max(self.now, due)
            if handle.cancelled:
                continue
            handle.callback()
            ran += 1
        self.now = deadline
        return ran

    def run_all(self, max_steps: int = 100_000) -> int:
        """Run until nothing is pending (bounded, in case callbacks reschedule forever)."""
        ran = 0
        while self._heap and ran < max_steps:
            due, _, handle = heapq.heappop(self._heap)
            self.now = max(self.now, due)
            if handle.cancelled:
                continue
            handle.callback()
            ran += 1
        return ran


__all__ = [
    "Handle",
    "Scheduler",
    "ImmediateScheduler",
    "ManualScheduler",
]
