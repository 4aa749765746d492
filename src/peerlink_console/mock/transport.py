"""In-memory loopback transport for tests and the demo.

Every identity registered on a :class:`LoopbackNetwork` can connect to every
other. All callbacks are delivered through the scheduler, never from inside
the call that triggered them, so tests drive the exchange with
``ManualScheduler.run_pending()``.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable

from peerlink_console.core.errors import ChannelError, ConnectFailure, IdentityCollision
from peerlink_console.core.types import SchedulerProtocol

logger = logging.getLogger(__name__)


class LoopbackChannel:
    """One end of an in-memory channel pair."""

    def __init__(self, network: LoopbackNetwork, peer: str) -> None:
        self.peer = peer
        self._network = network
        self._other: LoopbackChannel | None = None
        self.is_open = False
        self.closed = False
        self._close_fired = False
        self._buffered: list[Any] = []
        self._on_open: Callable[[], None] | None = None
        self._on_data: Callable[[Any], None] | None = None
        self._on_close: Callable[[], None] | None = None
        self._on_error: Callable[[Exception], None] | None = None
        self.sent: list[Any] = []

    def set_open_callback(self, cb: Callable[[], None]) -> None:
        self._on_open = cb

    def set_data_callback(self, cb: Callable[[Any], None]) -> None:
        self._on_data = cb

    def set_close_callback(self, cb: Callable[[], None]) -> None:
        self._on_close = cb

    def set_error_callback(self, cb: Callable[[Exception], None]) -> None:
        self._on_error = cb

    def send(self, payload: Any) -> None:
        if self.closed:
            raise ChannelError(f"channel to {self.peer} is closed")
        # Receivers must never share structure with the sender
        data = copy.deepcopy(payload)
        self.sent.append(data)
        other = self._other
        if other is not None:
            self._network.later(lambda: other._receive(data))

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.is_open = False
        self._buffered.clear()
        self._network.later(self._fire_close)
        if self._other is not None:
            self._other.close()

    def inject_error(self, exc: Exception) -> None:
        """Simulate a transport fault on this end."""
        self._network.later(lambda: self._fire_error(exc))

    def _open(self) -> None:
        if self.closed or self.is_open:
            return
        self.is_open = True
        if self._on_open is not None:
            self._on_open()
        pending, self._buffered = self._buffered, []
        for payload in pending:
            self._receive(payload)

    def _receive(self, payload: Any) -> None:
        if self.closed:
            return
        if not self.is_open:
            self._buffered.append(payload)
            return
        if self._on_data is not None:
            self._on_data(payload)

    def _fire_close(self) -> None:
        if self._close_fired:
            return
        self._close_fired = True
        if self._on_close is not None:
            self._on_close()

    def _fire_error(self, exc: Exception) -> None:
        if self.closed:
            return
        if self._on_error is not None:
            self._on_error(exc)


class LoopbackRegistration:
    def __init__(self, network: LoopbackNetwork, identity: str) -> None:
        self.identity = identity
        self._network = network
        self.is_open = False
        self.destroyed = False
        self._channels: list[LoopbackChannel] = []
        self._on_open: Callable[[str], None] | None = None
        self._on_connection: Callable[[LoopbackChannel], None] | None = None
        self._on_error: Callable[[Exception], None] | None = None

    @property
    def channels(self) -> list[LoopbackChannel]:
        return [channel for channel in self._channels if not channel.closed]

    def set_open_callback(self, cb: Callable[[str], None]) -> None:
        self._on_open = cb

    def set_connection_callback(self, cb: Callable[[LoopbackChannel], None]) -> None:
        self._on_connection = cb

    def set_error_callback(self, cb: Callable[[Exception], None]) -> None:
        self._on_error = cb

    def connect(self, target: str) -> LoopbackChannel:
        if self.destroyed or not self.is_open:
            raise ConnectFailure(f"{self.identity} is not registered")
        channel = LoopbackChannel(self._network, peer=target)
        self._channels.append(channel)
        self._network.later(lambda: self._network._deliver_offer(self, channel, target))
        return channel

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self.is_open = False
        self._network._release(self)
        for channel in self._channels:
            channel.close()
        self._channels.clear()

    def _fire_open(self) -> None:
        if self._on_open is not None:
            self._on_open(self.identity)

    def _fire_connection(self, channel: LoopbackChannel) -> None:
        if self._on_connection is not None:
            self._on_connection(channel)
        else:
            channel.close()

    def _fire_error(self, exc: Exception) -> None:
        if self._on_error is not None:
            self._on_error(exc)
        else:
            logger.warning("unhandled registration error for %s: %s", self.identity, exc)


class LoopbackNetwork:
    """A broker that knows every live identity."""

    def __init__(self, scheduler: SchedulerProtocol, *, latency: float = 0.0) -> None:
        self._scheduler = scheduler
        self._latency = latency
        self._live: dict[str, LoopbackRegistration] = {}
        self._injected: dict[str, Exception] = {}

    def register(self, identity: str) -> LoopbackRegistration:
        registration = LoopbackRegistration(self, identity)
        self.later(lambda: self._complete(registration))
        return registration

    def is_live(self, identity: str) -> bool:
        return identity in self._live

    def registration_for(self, identity: str) -> LoopbackRegistration | None:
        return self._live.get(identity)

    def inject_registration_error(self, identity: str, error: Exception) -> None:
        """Fail the next registration attempt for *identity* with *error*."""
        self._injected[identity] = error

    def later(self, callback: Callable[[], None]) -> None:
        self._scheduler.call_later(self._latency, callback)

    def _complete(self, registration: LoopbackRegistration) -> None:
        if registration.destroyed:
            return
        identity = registration.identity
        injected = self._injected.pop(identity, None)
        if injected is not None:
            registration._fire_error(injected)
            return
        if identity in self._live:
            registration._fire_error(IdentityCollision(identity))
            return
        self._live[identity] = registration
        registration.is_open = True
        logger.debug("loopback: %s registered", identity)
        registration._fire_open()

    def _release(self, registration: LoopbackRegistration) -> None:
        if self._live.get(registration.identity) is registration:
            del self._live[registration.identity]
            logger.debug("loopback: %s released", registration.identity)

    def _deliver_offer(
        self, origin: LoopbackRegistration, local: LoopbackChannel, target: str
    ) -> None:
        if local.closed or origin.destroyed:
            return
        remote = self._live.get(target)
        if remote is None or remote is origin:
            origin._fire_error(ConnectFailure(f"could not connect to peer {target}"))
            local.close()
            return
        inbound = LoopbackChannel(self, peer=origin.identity)
        inbound._other = local
        local._other = inbound
        inbound.is_open = True
        remote._channels.append(inbound)
        remote._fire_connection(inbound)
        if inbound.closed:
            # Rejected during the offer callback: the caller never sees an open
            return
        self.later(local._open)
