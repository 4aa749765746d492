"""Deterministic scheduler driven by explicit time advances."""

from __future__ import annotations

import heapq
import itertools
from typing import Callable


class ManualTimer:
    __slots__ = ("due", "seq", "callback", "cancelled")

    def __init__(self, due: float, seq: int, callback: Callable[[], None]) -> None:
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: ManualTimer) -> bool:
        return (self.due, self.seq) < (other.due, other.seq)


class ManualScheduler:
    """Runs callbacks only when the test (or demo) advances the clock.

    Callbacks due at the same instant run in scheduling order, and callbacks
    scheduled while running are picked up within the same advance if due.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[ManualTimer] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + max(0.0, delay), next(self._seq), callback)
        heapq.heappush(self._queue, timer)
        return timer

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every callback that falls due.

        Returns the number of callbacks run.
        """
        deadline = self.now + seconds
        ran = 0
        while self._queue and self._queue[0].due <= deadline:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now = max(self.now, timer.due)
            timer.callback()
            ran += 1
        self.now = deadline
        return ran

    def run_pending(self) -> int:
        """Run everything due now, including zero-delay follow-ups."""
        return self.advance(0.0)

    def pending(self) -> int:
        return sum(1 for timer in self._queue if not timer.cancelled)
