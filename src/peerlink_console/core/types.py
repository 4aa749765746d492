"""Type definitions for peerlink_console.

Protocol stubs for the transport collaborator and the timer scheduler, so the
session logic can be typed and tested without a concrete network stack.
Transports must deliver every callback asynchronously (never from inside the
call that caused it), in order, on the thread that drives the session.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

# Presentation events are plain dicts with 'type' and 'data' keys.
ChatEventDict = dict[str, Any]

# Structured payload as carried by the channel.
RawPayload = Any


# =============================================================================
# Transport
# =============================================================================


class ChannelProtocol(Protocol):
    """A reliable, ordered, bidirectional channel to exactly one peer."""

    peer: str

    def send(self, payload: RawPayload) -> None:
        """Queue a structured payload for delivery to the peer."""
        ...

    def close(self) -> None:
        """Close the channel. Both ends observe a close event."""
        ...

    def set_open_callback(self, cb: Callable[[], None]) -> None: ...

    def set_data_callback(self, cb: Callable[[RawPayload], None]) -> None: ...

    def set_close_callback(self, cb: Callable[[], None]) -> None: ...

    def set_error_callback(self, cb: Callable[[Exception], None]) -> None: ...


class RegistrationProtocol(Protocol):
    """A claimed identity on the transport."""

    identity: str

    def set_open_callback(self, cb: Callable[[str], None]) -> None:
        """Called with the confirmed identity once registration succeeds."""
        ...

    def set_connection_callback(self, cb: Callable[[ChannelProtocol], None]) -> None:
        """Called for every inbound connection offer."""
        ...

    def set_error_callback(self, cb: Callable[[Exception], None]) -> None: ...

    def connect(self, target: str) -> ChannelProtocol:
        """Start an outbound connect. May raise ConnectFailure."""
        ...

    def destroy(self) -> None:
        """Release the identity and every channel opened through it."""
        ...


class TransportProtocol(Protocol):
    def register(self, identity: str) -> RegistrationProtocol: ...


# =============================================================================
# Scheduling
# =============================================================================


class TimerHandleProtocol(Protocol):
    def cancel(self) -> None: ...


class SchedulerProtocol(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandleProtocol: ...


# Generates locally unique ids for messages and log entries
IdFactory = Callable[[], str]
