from __future__ import annotations

import logging
from typing import Any, Callable

from peerlink_console.core.enums import ConnectionState, TransitionReason
from peerlink_console.core.errors import (
    ChannelError,
    ConnectFailure,
    DecodeError,
    IdentityCollision,
    NoActiveLink,
    RegistrationFailure,
    RejectedConcurrentOffer,
)
from peerlink_console.core.types import (
    ChannelProtocol,
    RegistrationProtocol,
    SchedulerProtocol,
    TimerHandleProtocol,
    TransportProtocol,
)

from . import codec
from .codec import Envelope
from .diagnostics import DiagnosticLog
from .event_bridge import attach_channel_callbacks, attach_registration_callbacks
from .identity import IdentityManager
from .notices import SYSTEM_NOTICES

logger = logging.getLogger(__name__)

EnvelopeCallback = Callable[[Envelope, str], None]
TransitionCallback = Callable[[ConnectionState, ConnectionState, TransitionReason], None]


class ConnectionSession:
    """State machine owning the local registration and the single peer channel.

    All transport callbacks arrive through :mod:`event_bridge` tagged with the
    registration generation or channel token they were attached under. Any
    teardown bumps the counter first, so callbacks from a superseded
    registration or channel are discarded instead of mutating current state.
    """

    def __init__(
        self,
        transport: TransportProtocol,
        identity: IdentityManager,
        diagnostics: DiagnosticLog,
        scheduler: SchedulerProtocol,
        *,
        on_envelope: EnvelopeCallback | None = None,
        on_transition: TransitionCallback | None = None,
        link_target: str | None = None,
        auto_connect_delay: float = 0.5,
    ) -> None:
        self._transport = transport
        self._identity = identity
        self._diag = diagnostics
        self._scheduler = scheduler
        self._on_envelope = on_envelope
        self._on_transition = on_transition

        self._state = ConnectionState.OFFLINE
        self._registration: RegistrationProtocol | None = None
        self._registration_gen = 0
        self._confirmed_identity: str | None = None
        self._channel: ChannelProtocol | None = None
        self._channel_token = 0
        self._remote_peer: str | None = None

        self._link_target = link_target.strip() if link_target else None
        self._link_consumed = False
        self._auto_connect_delay = auto_connect_delay
        self._auto_connect_timer: TimerHandleProtocol | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED and self._channel is not None

    @property
    def remote_peer(self) -> str | None:
        return self._remote_peer

    @property
    def local_identity(self) -> str | None:
        """Identity confirmed by the transport, None until registered."""
        return self._confirmed_identity

    @property
    def desired_identity(self) -> str:
        return self._identity.current

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def boot(self) -> bool:
        """Register the chosen identity. Valid from OFFLINE, and from ERROR as a retry."""
        if self._state not in (ConnectionState.OFFLINE, ConnectionState.ERROR):
            logger.debug("boot ignored in state %s", self._state)
            return False
        self._register(TransitionReason.BOOT)
        return True

    def power_off(self) -> None:
        if self._state == ConnectionState.OFFLINE:
            return
        self._teardown()
        self._diag.warning("System shutdown: registration and link released.")
        self._set_state(ConnectionState.OFFLINE, TransitionReason.POWER_OFF)

    def change_identity(self, new_identity: str) -> bool:
        """Adopt a new identity; re-register when powered on.

        The active channel, if any, is dropped. The conversation log is left
        alone.
        """
        try:
            changed = self._identity.change(new_identity)
        except ValueError as exc:
            self._diag.error(f"Identity rejected: {exc}")
            return False
        if not changed:
            return False
        identity = self._identity.current
        self._diag.info(f"Re-initializing node with new identity: {identity}")
        if self._state != ConnectionState.OFFLINE:
            self._register(TransitionReason.IDENTITY_CHANGE)
        return True

    def connect(self, target: str) -> bool:
        target = target.strip()
        if self._state == ConnectionState.CONNECTED:
            self._diag.warning("Already connected. Terminate current link first.")
            return False
        if self._state != ConnectionState.READY or self._registration is None:
            self._diag.error(f"Cannot connect while {self._state}.")
            return False
        if not target:
            self._diag.error("Cannot connect: no target identity given.")
            return False
        if target == self._confirmed_identity:
            self._diag.error("Cannot connect to self. Targeting external node required.")
            return False

        self._diag.info(f"Initiating handshake with {target}...")
        self._set_state(ConnectionState.CONNECTING, TransitionReason.CONNECT)
        try:
            channel = self._registration.connect(target)
        except Exception as exc:  # noqa: BLE001
            failure = exc if isinstance(exc, ConnectFailure) else ConnectFailure(str(exc))
            self._diag.error(f"Handshake failed: {failure}")
            self._set_state(ConnectionState.READY, TransitionReason.CONNECT_FAILED)
            return False
        self._adopt_channel(channel, target)
        return True

    def disconnect(self) -> bool:
        """Close the active (or pending) channel. Returns False if there is none."""
        channel = self._channel
        if channel is None:
            return False
        self._drop_channel()
        self._close_quietly(channel)
        self._diag.info("Manual disconnect initiated.")
        self._set_state(ConnectionState.READY, TransitionReason.MANUAL)
        return True

    def send(self, envelope: Envelope) -> None:
        """Encode and send *envelope* on the open channel.

        Raises NoActiveLink when not CONNECTED and ChannelError when the
        transport refuses the payload.
        """
        channel = self._channel
        if self._state != ConnectionState.CONNECTED or channel is None:
            raise NoActiveLink("send")
        raw = codec.encode(envelope)
        try:
            channel.send(raw)
        except ChannelError:
            raise
        except Exception as exc:
            raise ChannelError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Transport callbacks (via event_bridge)
    # ------------------------------------------------------------------

    def handle_registered(self, generation: int, identity: str) -> None:
        if generation != self._registration_gen or self._state != ConnectionState.INITIALIZING:
            logger.debug("stale registration open gen=%d", generation)
            return
        self._confirmed_identity = identity
        self._diag.success(f"Identity confirmed: {identity}")
        self._set_state(ConnectionState.READY, TransitionReason.REGISTERED)
        self._schedule_link_target()

    def handle_registration_error(self, generation: int, exc: Exception) -> None:
        if generation != self._registration_gen:
            logger.debug("stale registration error gen=%d: %s", generation, exc)
            return
        terminal = isinstance(exc, (IdentityCollision, RegistrationFailure))
        if self._state != ConnectionState.INITIALIZING and not terminal:
            if self._state == ConnectionState.CONNECTING:
                # Brokers report an unreachable target as an error on the registration,
                # not on the channel, so the pending handshake fails here
                channel = self._channel
                self._drop_channel()
                if channel is not None:
                    self._close_quietly(channel)
                self._diag.error(f"Handshake failed: {exc}")
                self._set_state(ConnectionState.READY, TransitionReason.CONNECT_FAILED)
            else:
                self._diag.error(f"Transport error: {exc}")
            return
        error = self._identity.classify_error(exc)
        if isinstance(error, IdentityCollision):
            self._diag.error(f'ID collision: "{self._identity.current}" is already in use.')
        else:
            self._diag.error(f"Registration failed: {error}")
        self._teardown()
        self._set_state(ConnectionState.ERROR, TransitionReason.REGISTRATION_FAILED)

    def handle_offer(self, generation: int, channel: ChannelProtocol) -> None:
        if generation != self._registration_gen:
            logger.debug("offer from superseded registration gen=%d", generation)
            self._close_quietly(channel)
            return
        if self._channel is not None or self._state != ConnectionState.READY:
            rejected = RejectedConcurrentOffer(channel.peer)
            self._close_quietly(channel)
            self._diag.warning(f"Rejected concurrent connection attempt from {rejected.peer}")
            return
        self._adopt_channel(channel, channel.peer)
        self._diag.warning(f"Incoming handshake from: {channel.peer}")
        self._enter_connected(TransitionReason.INBOUND)

    def handle_channel_open(self, token: int) -> None:
        if token != self._channel_token or self._channel is None:
            return
        if self._state == ConnectionState.CONNECTING:
            self._enter_connected(TransitionReason.OPENED)

    def handle_channel_data(self, token: int, raw: Any) -> None:
        if token != self._channel_token or self._state != ConnectionState.CONNECTED:
            logger.debug("dropping data for stale channel token=%d", token)
            return
        try:
            envelope = codec.decode(raw)
        except DecodeError as exc:
            self._diag.warning(f"Dropped malformed envelope: {exc}")
            return
        peer = self._remote_peer or ""
        if self._on_envelope is not None:
            self._on_envelope(envelope, peer)

    def handle_channel_close(self, token: int) -> None:
        if token != self._channel_token or self._channel is None:
            return
        was_connected = self._state == ConnectionState.CONNECTED
        peer = self._remote_peer
        self._drop_channel()
        if was_connected:
            self._diag.warning(SYSTEM_NOTICES["disconnected"])
            self._set_state(ConnectionState.READY, TransitionReason.CLOSED)
        elif self._state == ConnectionState.CONNECTING:
            self._diag.error(f"Handshake with {peer} failed: channel closed.")
            self._set_state(ConnectionState.READY, TransitionReason.CONNECT_FAILED)

    def handle_channel_error(self, token: int, exc: Exception) -> None:
        if token != self._channel_token or self._channel is None:
            return
        channel = self._channel
        was_connected = self._state == ConnectionState.CONNECTED
        self._drop_channel()
        self._close_quietly(channel)
        error = exc if isinstance(exc, (ChannelError, ConnectFailure)) else ChannelError(str(exc))
        self._diag.error(f"Connection error: {error}")
        reason = TransitionReason.CHANNEL_ERROR if was_connected else TransitionReason.CONNECT_FAILED
        self._set_state(ConnectionState.READY, reason)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _register(self, reason: TransitionReason) -> None:
        self._teardown()
        identity = self._identity.current
        generation = self._registration_gen
        self._diag.info(SYSTEM_NOTICES["register"])
        self._set_state(ConnectionState.INITIALIZING, reason)
        try:
            registration = self._transport.register(identity)
        except Exception as exc:  # noqa: BLE001
            self.handle_registration_error(generation, exc)
            return
        self._registration = registration
        attach_registration_callbacks(
            registration=registration, session=self, generation=generation
        )

    def _teardown(self) -> None:
        """Invalidate the registration and channel before anything new starts."""
        if self._auto_connect_timer is not None:
            self._auto_connect_timer.cancel()
            self._auto_connect_timer = None
        self._registration_gen += 1
        channel = self._channel
        self._drop_channel()
        if channel is not None:
            self._close_quietly(channel)
        registration = self._registration
        self._registration = None
        self._confirmed_identity = None
        if registration is not None:
            try:
                registration.destroy()
            except Exception as exc:  # noqa: BLE001
                logger.debug("registration.destroy() failed: %s", exc)

    def _adopt_channel(self, channel: ChannelProtocol, peer: str) -> None:
        self._channel_token += 1
        self._channel = channel
        self._remote_peer = peer
        attach_channel_callbacks(channel=channel, session=self, token=self._channel_token)

    def _drop_channel(self) -> None:
        self._channel_token += 1
        self._channel = None
        self._remote_peer = None

    def _close_quietly(self, channel: ChannelProtocol) -> None:
        try:
            channel.close()
        except Exception as exc:  # noqa: BLE001
            logger.debug("channel.close() failed: %s", exc)

    def _enter_connected(self, reason: TransitionReason) -> None:
        self._diag.success(SYSTEM_NOTICES["connected"])
        self._set_state(ConnectionState.CONNECTED, reason)

    def _schedule_link_target(self) -> None:
        if self._link_target is None or self._link_consumed:
            return
        self._link_consumed = True
        target = self._link_target
        self._diag.info(f"Found target coordinates in link: {target}")

        def fire() -> None:
            self._auto_connect_timer = None
            if self._state != ConnectionState.READY:
                self._diag.warning(f"Skipped link target {target}: node is {self._state}.")
                return
            self.connect(target)

        self._auto_connect_timer = self._scheduler.call_later(self._auto_connect_delay, fire)

    def _set_state(self, new_state: ConnectionState, reason: TransitionReason) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.info("state %s -> %s (%s)", old_state, new_state, reason)
        if self._on_transition is not None:
            self._on_transition(old_state, new_state, reason)
