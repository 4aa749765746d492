"""Conversation log and the reducer that applies local actions and remote envelopes.

Records are immutable snapshots; every mutation replaces the record in place,
keeping its position and id. Mutations that reference an id the log does not
hold (for example after a clear) are silent no-ops, which makes replayed or
late signals harmless.

Ownership rules: local edit/delete touch only local-authored messages, remote
edit/delete only remote-authored ones, and acks only local messages.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Protocol

from peerlink_console.core.enums import DeliveryStatus, EventType, MessageKind, Sender
from peerlink_console.core.errors import ChannelError, NoActiveLink
from peerlink_console.core.ids import random_id
from peerlink_console.core.models import FileMeta, Message, ReplyReference
from peerlink_console.core.types import IdFactory

from .codec import (
    AckEnvelope,
    DeleteEnvelope,
    EditEnvelope,
    Envelope,
    FileEnvelope,
    TextEnvelope,
)
from .diagnostics import DiagnosticLog
from .file_transfer import FileTransferHandler, format_size

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[EventType, "Message | None"], None]


class Link(Protocol):
    """The part of the connection session the log relies on."""

    @property
    def is_connected(self) -> bool: ...

    def send(self, envelope: Envelope) -> None: ...


class MessageLog:
    def __init__(
        self,
        link: Link,
        diagnostics: DiagnosticLog,
        *,
        files: FileTransferHandler | None = None,
        id_factory: IdFactory | None = None,
        on_change: ChangeCallback | None = None,
    ) -> None:
        self._link = link
        self._diag = diagnostics
        self._files = files or FileTransferHandler()
        self._id_factory = id_factory or random_id
        self._on_change = on_change
        self._messages: list[Message] = []
        self._positions: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def messages(self, limit: int = 0) -> list[Message]:
        if limit > 0:
            return self._messages[-limit:]
        return list(self._messages)

    def get(self, message_id: str) -> Message | None:
        position = self._positions.get(message_id)
        return self._messages[position] if position is not None else None

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._positions

    # ------------------------------------------------------------------
    # Local actions
    # ------------------------------------------------------------------

    def append_local_text(self, content: str, reply_to: ReplyReference | None = None) -> Message:
        """Send a text envelope and record it as ``sent``.

        Raises NoActiveLink without touching the log when not connected.
        """
        self._require_link("send")
        message_id = self._new_id()
        self._send_or_raise(TextEnvelope(content=content, reply_to=reply_to, id=message_id))
        message = Message(
            id=message_id,
            sender=Sender.LOCAL,
            content=content,
            kind=MessageKind.TEXT,
            status=DeliveryStatus.SENT,
            reply_to=reply_to,
        )
        self._append(message)
        return message

    def append_local_file(
        self,
        name: str,
        payload: bytes | bytearray | memoryview,
        mime_type: str | None = None,
    ) -> Message:
        """Send a whole file and record it as ``sending`` until acked."""
        self._require_link("send")
        envelope = self._files.package(self._new_id(), name, payload, mime_type)
        self._diag.info(
            f"Initiating file transfer: {envelope.name} ({format_size(envelope.size)})..."
        )
        self._send_or_raise(envelope)
        self._files.track(envelope)
        message = Message(
            id=envelope.id,
            sender=Sender.LOCAL,
            content=f"Sending file: {envelope.name}",
            kind=MessageKind.FILE,
            status=DeliveryStatus.SENDING,
            file=FileMeta(
                name=envelope.name,
                size=envelope.size,
                mime_type=envelope.mime_type,
                handle=self._files.materialize(envelope),
            ),
        )
        self._append(message)
        return message

    def edit_local(self, message_id: str, content: str) -> bool:
        if not self._link.is_connected:
            self._diag.warning("Cannot edit: No active uplink.")
            return False
        message = self.get(message_id)
        if not _editable(message, Sender.LOCAL) or _same_edit(message, content):
            return False
        if not self._send_quietly(EditEnvelope(message_id=message_id, content=content)):
            return False
        self._replace(replace(message, content=content, edited=True))
        return True

    def delete_local(self, message_id: str) -> bool:
        if not self._link.is_connected:
            self._diag.warning("Cannot delete: No active uplink.")
            return False
        message = self.get(message_id)
        if message is None or message.sender != Sender.LOCAL or message.deleted:
            return False
        if not self._send_quietly(DeleteEnvelope(message_id=message_id)):
            return False
        self._replace(replace(message, deleted=True))
        return True

    def append_system(self, content: str) -> Message:
        message = Message(id=self._new_id(), sender=Sender.SYSTEM, content=content)
        self._append(message)
        return message

    def clear(self) -> None:
        self._messages.clear()
        self._positions.clear()
        self._files.forget_all()
        self._diag.warning("Message buffer cleared.")
        self._notify(EventType.MESSAGES_CLEARED, None)

    # ------------------------------------------------------------------
    # Remote envelopes
    # ------------------------------------------------------------------

    def apply_remote_text(self, envelope: TextEnvelope, from_identity: str) -> Message:
        existing = self._existing_remote(envelope.id)
        if existing is not None:
            logger.debug("duplicate text envelope %s ignored", envelope.id)
            return existing
        message = Message(
            id=self._adopt_id(envelope.id),
            sender=Sender.REMOTE,
            sender_identity=from_identity,
            content=envelope.content,
            kind=MessageKind.TEXT,
            reply_to=envelope.reply_to,
        )
        self._append(message)
        return message

    def apply_remote_file(self, envelope: FileEnvelope, from_identity: str) -> Message:
        """Record a received file and acknowledge it back to the sender."""
        message = self._existing_remote(envelope.id)
        if message is None:
            message = Message(
                id=self._adopt_id(envelope.id),
                sender=Sender.REMOTE,
                sender_identity=from_identity,
                content=f"Received file: {envelope.name}",
                kind=MessageKind.FILE,
                file=FileMeta(
                    name=envelope.name,
                    size=envelope.size,
                    mime_type=envelope.mime_type,
                    handle=self._files.materialize(envelope),
                ),
            )
            self._append(message)
            self._diag.success(f"Received file packet: {envelope.name}")
        # Ack even duplicates; the sender treats repeats as no-ops
        self._send_quietly(AckEnvelope(message_id=envelope.id))
        return message

    def apply_ack(self, message_id: str) -> bool:
        message = self.get(message_id)
        if message is None or message.sender != Sender.LOCAL or message.status is None:
            return False
        if message.status.rank >= DeliveryStatus.DELIVERED.rank:
            return False
        self._replace(replace(message, status=DeliveryStatus.DELIVERED))
        name = self._files.acknowledge(message_id)
        if name is not None:
            self._diag.success(f"Delivery confirmed: {name}")
        return True

    def apply_remote_edit(self, message_id: str, content: str) -> bool:
        message = self.get(message_id)
        if not _editable(message, Sender.REMOTE) or _same_edit(message, content):
            return False
        self._replace(replace(message, content=content, edited=True))
        return True

    def apply_remote_delete(self, message_id: str) -> bool:
        message = self.get(message_id)
        if message is None or message.sender != Sender.REMOTE or message.deleted:
            return False
        self._replace(replace(message, deleted=True))
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_link(self, action: str) -> None:
        if not self._link.is_connected:
            self._diag.error(f"Cannot {action}: No active uplink.")
            raise NoActiveLink(action)

    def _send_or_raise(self, envelope: Envelope) -> None:
        try:
            self._link.send(envelope)
        except NoActiveLink:
            self._diag.error("Cannot send: No active uplink.")
            raise
        except ChannelError as exc:
            self._diag.error(f"Send failed: {exc}")
            raise

    def _send_quietly(self, envelope: Envelope) -> bool:
        try:
            self._link.send(envelope)
        except (NoActiveLink, ChannelError) as exc:
            self._diag.error(f"Send failed: {exc}")
            return False
        return True

    def _new_id(self) -> str:
        message_id = self._id_factory()
        while message_id in self._positions:
            message_id = self._id_factory()
        return message_id

    def _adopt_id(self, proposed: str | None) -> str:
        """Key a remote message by the sender's id when it is free here."""
        if proposed and proposed not in self._positions:
            return proposed
        return self._new_id()

    def _existing_remote(self, message_id: str | None) -> Message | None:
        if not message_id:
            return None
        message = self.get(message_id)
        if message is not None and message.sender == Sender.REMOTE:
            return message
        return None

    def _append(self, message: Message) -> None:
        self._positions[message.id] = len(self._messages)
        self._messages.append(message)
        self._notify(EventType.MESSAGE_ADDED, message)

    def _replace(self, message: Message) -> None:
        self._messages[self._positions[message.id]] = message
        self._notify(EventType.MESSAGE_UPDATED, message)

    def _notify(self, event_type: EventType, message: Message | None) -> None:
        if self._on_change is not None:
            self._on_change(event_type, message)


def _editable(message: Message | None, author: Sender) -> bool:
    return (
        message is not None
        and message.sender == author
        and message.kind == MessageKind.TEXT
        and not message.deleted
    )


def _same_edit(message: Message, content: str) -> bool:
    return message.edited and message.content == content
