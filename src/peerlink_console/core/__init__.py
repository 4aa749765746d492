from .enums import (
    ConnectionState,
    DeliveryStatus,
    EnvelopeKind,
    EventType,
    MessageKind,
    Sender,
    Severity,
    TransitionReason,
)
from .errors import (
    ChannelError,
    ConnectFailure,
    DecodeError,
    IdentityCollision,
    NoActiveLink,
    PeerlinkError,
    RegistrationFailure,
    RejectedConcurrentOffer,
)
from .models import FileHandle, FileMeta, LogEntry, Message, ReplyReference
from .types import (
    ChannelProtocol,
    ChatEventDict,
    IdFactory,
    RegistrationProtocol,
    SchedulerProtocol,
    TransportProtocol,
)

__all__ = [
    "ChannelError",
    "ChannelProtocol",
    "ChatEventDict",
    "ConnectFailure",
    "ConnectionState",
    "DecodeError",
    "DeliveryStatus",
    "EnvelopeKind",
    "EventType",
    "FileHandle",
    "FileMeta",
    "IdFactory",
    "IdentityCollision",
    "LogEntry",
    "Message",
    "MessageKind",
    "NoActiveLink",
    "PeerlinkError",
    "RegistrationFailure",
    "RegistrationProtocol",
    "RejectedConcurrentOffer",
    "ReplyReference",
    "SchedulerProtocol",
    "Sender",
    "Severity",
    "TransitionReason",
    "TransportProtocol",
]
