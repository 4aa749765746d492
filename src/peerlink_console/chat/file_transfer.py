"""Whole-file transfer: one envelope per file, acknowledged by id.

There is no chunking and no retry. A file whose ack never arrives stays
``sending``; that is a visible state, not an error.
"""

from __future__ import annotations

import logging
import mimetypes

from peerlink_console.core.models import FileHandle

from .codec import FileEnvelope

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def guess_mime_type(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name, strict=False)
    return mime_type or DEFAULT_MIME_TYPE


def format_size(size: int) -> str:
    """Human readable size: ``0 Bytes``, ``512 Bytes``, ``1.5 KB``, ``2.25 MB``."""
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(_SIZE_UNITS) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[exponent]}"


class FileTransferHandler:
    def __init__(self) -> None:
        # message id -> file name, for transfers still waiting on an ack
        self._awaiting_ack: dict[str, str] = {}

    def package(
        self,
        message_id: str,
        name: str,
        payload: bytes | bytearray | memoryview,
        mime_type: str | None = None,
    ) -> FileEnvelope:
        data = bytes(payload)
        return FileEnvelope(
            id=message_id,
            name=name,
            size=len(data),
            mime_type=mime_type or guess_mime_type(name),
            payload=data,
        )

    def materialize(self, envelope: FileEnvelope) -> FileHandle:
        """Build the locally retrievable handle for a sent or received file."""
        if envelope.size != len(envelope.payload):
            logger.warning(
                "file %s declares %d bytes but carries %d",
                envelope.name,
                envelope.size,
                len(envelope.payload),
            )
        return FileHandle(name=envelope.name, mime_type=envelope.mime_type, data=envelope.payload)

    def track(self, envelope: FileEnvelope) -> None:
        self._awaiting_ack[envelope.id] = envelope.name

    def acknowledge(self, message_id: str) -> str | None:
        """Stop tracking *message_id*; returns the file name if it was pending."""
        return self._awaiting_ack.pop(message_id, None)

    def pending(self) -> dict[str, str]:
        return dict(self._awaiting_ack)

    def forget_all(self) -> None:
        self._awaiting_ack.clear()
