"""Enums for connection states, message fields, envelope kinds and events."""

from enum import StrEnum


class ConnectionState(StrEnum):
    """Lifecycle of the single peer link.

    OFFLINE       - no local identity registered (powered off)
    INITIALIZING  - registering the local identity with the transport
    READY         - registered, no active channel
    CONNECTING    - outbound connect in flight
    CONNECTED     - exactly one open channel
    ERROR         - registration failed; needs boot() or a new identity
    """

    OFFLINE = "OFFLINE"
    INITIALIZING = "INITIALIZING"
    READY = "READY"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    ERROR = "ERROR"


class Sender(StrEnum):
    LOCAL = "local"
    REMOTE = "remote"
    SYSTEM = "system"


class MessageKind(StrEnum):
    TEXT = "text"
    FILE = "file"


class DeliveryStatus(StrEnum):
    """Delivery status of a locally authored message.

    Only ever advances SENDING -> SENT -> DELIVERED.
    """

    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = (DeliveryStatus.SENDING, DeliveryStatus.SENT, DeliveryStatus.DELIVERED)


class Severity(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class EnvelopeKind(StrEnum):
    """Wire tag of a channel envelope."""

    TEXT = "text"
    FILE = "file"
    ACK = "ack"
    EDIT = "edit"
    DELETE = "delete"
    TYPING = "typing"


class EventType(StrEnum):
    """Event types emitted by the chat client for the presentation layer."""

    STATE_CHANGED = "state_changed"
    IDENTITY_CHANGED = "identity_changed"
    MESSAGE_ADDED = "message_added"
    MESSAGE_UPDATED = "message_updated"
    MESSAGES_CLEARED = "messages_cleared"
    LOG_ADDED = "log_added"
    LOGS_CLEARED = "logs_cleared"
    REMOTE_TYPING = "remote_typing"


class TransitionReason(StrEnum):
    """Why the connection session changed state."""

    BOOT = "boot"
    REGISTERED = "registered"
    REGISTRATION_FAILED = "registration_failed"
    CONNECT = "connect"
    CONNECT_FAILED = "connect_failed"
    INBOUND = "inbound"
    OPENED = "opened"
    CLOSED = "closed"
    CHANNEL_ERROR = "channel_error"
    MANUAL = "manual"
    IDENTITY_CHANGE = "identity_change"
    POWER_OFF = "power_off"
