from .client import ChatClient
from .codec import (
    AckEnvelope,
    DeleteEnvelope,
    EditEnvelope,
    Envelope,
    FileEnvelope,
    TextEnvelope,
    TypingEnvelope,
    decode,
    encode,
)
from .config import ChatConfig, load_chat_config
from .diagnostics import DiagnosticLog
from .identity import IdentityManager
from .message_log import MessageLog
from .scheduler import AsyncioScheduler
from .session import ConnectionSession
from .typing_signal import TypingSignalController

__all__ = [
    "AckEnvelope",
    "AsyncioScheduler",
    "ChatClient",
    "ChatConfig",
    "ConnectionSession",
    "DeleteEnvelope",
    "DiagnosticLog",
    "EditEnvelope",
    "Envelope",
    "FileEnvelope",
    "IdentityManager",
    "MessageLog",
    "TextEnvelope",
    "TypingEnvelope",
    "TypingSignalController",
    "decode",
    "encode",
    "load_chat_config",
]
