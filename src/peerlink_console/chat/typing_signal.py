from __future__ import annotations

import logging
from typing import Callable

from peerlink_console.core.types import SchedulerProtocol, TimerHandleProtocol

logger = logging.getLogger(__name__)


class TypingSignalController:
    """Debounced local typing broadcast plus the remote typing flag.

    Every local input broadcasts ``True`` and re-arms a single debounce timer;
    when the timer fires without further input, ``False`` is broadcast once.
    The receiving side keeps no timer: the flag follows the last signal, and
    any arriving text or file clears it.
    """

    def __init__(
        self,
        scheduler: SchedulerProtocol,
        broadcast: Callable[[bool], None],
        *,
        delay: float = 1.5,
        on_remote_change: Callable[[bool], None] | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._broadcast = broadcast
        self._delay = delay
        self._on_remote_change = on_remote_change
        self._timer: TimerHandleProtocol | None = None
        self._remote_typing = False

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def local_typing(self) -> bool:
        """True while a debounce timer is armed."""
        return self._timer is not None

    @property
    def remote_typing(self) -> bool:
        return self._remote_typing

    def notify_input(self) -> None:
        self._broadcast(True)
        self.cancel()
        self._timer = self._scheduler.call_later(self._delay, self._expire)

    def stop(self) -> None:
        """Cancel the debounce and broadcast ``False`` now (message sent, disconnect)."""
        self.cancel()
        self._broadcast(False)

    def cancel(self) -> None:
        """Drop the debounce without broadcasting (link already gone)."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def set_remote(self, is_typing: bool) -> None:
        if is_typing == self._remote_typing:
            return
        self._remote_typing = is_typing
        if self._on_remote_change is not None:
            self._on_remote_change(is_typing)

    def clear_remote(self) -> None:
        self.set_remote(False)

    def _expire(self) -> None:
        self._timer = None
        logger.debug("typing debounce expired")
        self._broadcast(False)
