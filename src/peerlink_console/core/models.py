from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from .enums import DeliveryStatus, MessageKind, Sender, Severity

REPLY_PREVIEW_LENGTH = 50


@dataclass(slots=True, frozen=True)
class FileHandle:
    """Locally retrievable payload of a file message."""

    name: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    def open(self) -> io.BytesIO:
        return io.BytesIO(self.data)

    def save(self, directory: str | Path, fallback_name: str = "download") -> Path:
        """Write the payload into *directory*, keeping only the base name.

        Names with no usable base name (``""``, ``"."``, ``".."``) are saved as
        *fallback_name*. Existing files are never overwritten; ``-1``, ``-2`` ...
        is appended to the stem instead.
        """
        base = Path(self.name).name
        if base in ("", ".", ".."):
            base = fallback_name
        folder = Path(directory)
        folder.mkdir(parents=True, exist_ok=True)
        target = folder / base
        counter = 1
        while target.exists():
            target = folder / f"{Path(base).stem}-{counter}{Path(base).suffix}"
            counter += 1
        target.write_bytes(self.data)
        return target


@dataclass(slots=True, frozen=True)
class FileMeta:
    name: str
    size: int
    mime_type: str
    handle: FileHandle | None = None


@dataclass(slots=True, frozen=True)
class ReplyReference:
    """Frozen preview of the message being replied to."""

    id: str
    sender: Sender
    content: str

    @classmethod
    def from_message(cls, message: Message) -> ReplyReference:
        if message.kind == MessageKind.FILE and message.file is not None:
            preview = f"[FILE] {message.file.name}"
        elif len(message.content) > REPLY_PREVIEW_LENGTH:
            preview = message.content[:REPLY_PREVIEW_LENGTH] + "..."
        else:
            preview = message.content
        return cls(id=message.id, sender=message.sender, content=preview)


@dataclass(slots=True, frozen=True)
class Message:
    id: str
    sender: Sender
    content: str
    kind: MessageKind = MessageKind.TEXT
    sender_identity: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    status: DeliveryStatus | None = None
    reply_to: ReplyReference | None = None
    edited: bool = False
    deleted: bool = False
    file: FileMeta | None = None

    @property
    def visible_content(self) -> str | None:
        """Content as it may be shown; None for tombstoned messages."""
        return None if self.deleted else self.content


@dataclass(slots=True, frozen=True)
class LogEntry:
    id: str
    message: str
    severity: Severity = Severity.INFO
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
