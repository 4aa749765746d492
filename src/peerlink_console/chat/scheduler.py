from __future__ import annotations

import asyncio
from typing import Callable

from peerlink_console.core.types import TimerHandleProtocol


class AsyncioScheduler:
    """Schedules callbacks on the running asyncio loop.

    Every callback runs on the loop thread, so the session sees timer
    firings interleaved with transport events but never concurrently.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandleProtocol:
        return self.loop.call_later(max(0.0, delay), callback)
