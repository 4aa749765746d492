"""Funnels raw transport callbacks into the connection session.

Every callback is bound to the generation token that was current when it was
attached; the session discards callbacks whose token has been superseded.
Exceptions raised while handling a callback are logged here and never
propagate back into the transport.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, Callable

from peerlink_console.core.types import ChannelProtocol, RegistrationProtocol

if TYPE_CHECKING:
    from .session import ConnectionSession

logger = logging.getLogger(__name__)


def _guarded(name: str, fn: Callable[..., None]) -> Callable[..., None]:
    @functools.wraps(fn)
    def wrapper(*args: Any) -> None:
        try:
            fn(*args)
        except Exception:  # noqa: BLE001
            logger.exception("unhandled error in %s callback", name)

    return wrapper


def attach_registration_callbacks(
    *,
    registration: RegistrationProtocol,
    session: ConnectionSession,
    generation: int,
) -> None:
    def on_open(identity: str) -> None:
        session.handle_registered(generation, identity)

    def on_connection(channel: ChannelProtocol) -> None:
        session.handle_offer(generation, channel)

    def on_error(exc: Exception) -> None:
        session.handle_registration_error(generation, exc)

    registration.set_open_callback(_guarded("registration open", on_open))
    registration.set_connection_callback(_guarded("inbound connection", on_connection))
    registration.set_error_callback(_guarded("registration error", on_error))
    logger.debug("registered callbacks for identity=%s gen=%d", registration.identity, generation)


def attach_channel_callbacks(
    *,
    channel: ChannelProtocol,
    session: ConnectionSession,
    token: int,
) -> None:
    def on_open() -> None:
        session.handle_channel_open(token)

    def on_data(payload: Any) -> None:
        session.handle_channel_data(token, payload)

    def on_close() -> None:
        session.handle_channel_close(token)

    def on_error(exc: Exception) -> None:
        session.handle_channel_error(token, exc)

    channel.set_open_callback(_guarded("channel open", on_open))
    channel.set_data_callback(_guarded("channel data", on_data))
    channel.set_close_callback(_guarded("channel close", on_close))
    channel.set_error_callback(_guarded("channel error", on_error))
    logger.debug("registered channel callbacks for peer=%s token=%d", channel.peer, token)
