"""Error taxonomy for the peer link.

Only :class:`IdentityCollision` and :class:`RegistrationFailure` are terminal:
the session stays in ERROR until ``boot()`` is retried or a new identity is
chosen. Everything else heals back to READY.
"""

from __future__ import annotations


class PeerlinkError(Exception):
    """Base class for all peer link errors."""


class IdentityCollision(PeerlinkError):
    """The chosen identity is already claimed on the transport."""

    def __init__(self, identity: str) -> None:
        super().__init__(f'identity "{identity}" is already in use')
        self.identity = identity


class RegistrationFailure(PeerlinkError):
    """Any other failure while registering the local identity."""


class ConnectFailure(PeerlinkError):
    """An outbound connect could not be initiated or failed before opening."""


class ChannelError(PeerlinkError):
    """Runtime fault on an open channel."""


class NoActiveLink(PeerlinkError):
    """A local action needs a CONNECTED session."""

    def __init__(self, action: str = "send") -> None:
        super().__init__(f"cannot {action}: no active link")
        self.action = action


class RejectedConcurrentOffer(PeerlinkError):
    """An inbound offer arrived while a channel was already held."""

    def __init__(self, peer: str) -> None:
        super().__init__(f"rejected concurrent connection attempt from {peer}")
        self.peer = peer


class DecodeError(PeerlinkError):
    """An inbound payload is not a well-formed envelope."""
