from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from peerlink_console.core.enums import (
    ConnectionState,
    EnvelopeKind,
    EventType,
    TransitionReason,
)
from peerlink_console.core.errors import ChannelError, NoActiveLink
from peerlink_console.core.ids import random_id
from peerlink_console.core.models import LogEntry, Message, ReplyReference
from peerlink_console.core.types import (
    ChatEventDict,
    IdFactory,
    SchedulerProtocol,
    TransportProtocol,
)

from .codec import (
    AckEnvelope,
    DeleteEnvelope,
    EditEnvelope,
    Envelope,
    FileEnvelope,
    TextEnvelope,
    TypingEnvelope,
)
from .config import ChatConfig
from .db import open_db
from .diagnostics import DiagnosticLog
from .events import log_entry_to_dict, make_event, message_to_dict
from .file_transfer import FileTransferHandler
from .identity import IdentityManager
from .message_log import MessageLog
from .notices import LINK_LOST_MESSAGES, SYSTEM_NOTICES
from .paths import downloads_dir
from .session import ConnectionSession
from .settings_store import SettingsStore
from .typing_signal import TypingSignalController

logger = logging.getLogger(__name__)


class ChatClient:
    """One chat node: identity, session, conversation log and typing state.

    UI actions enter through the public methods; inbound envelopes arrive via
    the session and are dispatched here by kind. The presentation layer reads
    snapshots and drains :meth:`poll_events`.
    """

    def __init__(
        self,
        transport: TransportProtocol,
        scheduler: SchedulerProtocol,
        *,
        config: ChatConfig | None = None,
        settings_store: SettingsStore | None = None,
        identity: str | None = None,
        id_factory: IdFactory | None = None,
        log_id_factory: IdFactory | None = None,
    ) -> None:
        self._config = config or ChatConfig()
        if settings_store is None:
            settings_store = SettingsStore(open_db(self._config.db_path))
        ids = id_factory or random_id
        # Zero or negative would disable trimming
        self._max_events = max(1, self._config.max_events)

        self._event_notify: Callable[[], None] | None = None
        self._event_buffer: list[ChatEventDict] = []
        self._event_history: list[ChatEventDict] = []

        self.diagnostics = DiagnosticLog(
            id_factory=log_id_factory or random_id, on_entry=self._on_log_entry
        )
        self.identity = IdentityManager(settings_store, preferred=identity)
        self.files = FileTransferHandler()
        self.session = ConnectionSession(
            transport,
            self.identity,
            self.diagnostics,
            scheduler,
            on_envelope=self._dispatch,
            on_transition=self._on_transition,
            link_target=self._config.connect_target,
            auto_connect_delay=self._config.auto_connect_delay,
        )
        self.log = MessageLog(
            self.session,
            self.diagnostics,
            files=self.files,
            id_factory=ids,
            on_change=self._on_message_change,
        )
        self.typing = TypingSignalController(
            scheduler,
            self._broadcast_typing,
            delay=self._config.typing_debounce,
            on_remote_change=self._on_remote_typing,
        )
        self._handlers: dict[EnvelopeKind, Callable[[Envelope, str], None]] = {
            EnvelopeKind.TEXT: self._on_text,
            EnvelopeKind.FILE: self._on_file,
            EnvelopeKind.ACK: self._on_ack,
            EnvelopeKind.EDIT: self._on_edit,
            EnvelopeKind.DELETE: self._on_delete,
            EnvelopeKind.TYPING: self._on_typing,
        }
        logger.debug("chat client created: %s", self._config.to_log_string())

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self.session.state

    @property
    def is_connected(self) -> bool:
        return self.session.is_connected

    @property
    def local_identity(self) -> str | None:
        return self.session.local_identity

    @property
    def remote_peer(self) -> str | None:
        return self.session.remote_peer

    @property
    def remote_typing(self) -> bool:
        return self.typing.remote_typing

    def list_messages(self, limit: int = 0) -> list[Message]:
        return self.log.messages(limit)

    def get_message(self, message_id: str) -> Message | None:
        return self.log.get(message_id)

    def list_logs(self, limit: int = 0) -> list[LogEntry]:
        return self.diagnostics.entries(limit)

    # ------------------------------------------------------------------
    # Node lifecycle
    # ------------------------------------------------------------------

    def power_on(self) -> bool:
        if self.state not in (ConnectionState.OFFLINE, ConnectionState.ERROR):
            return False
        self.diagnostics.success(SYSTEM_NOTICES["boot"])
        return self.session.boot()

    def power_off(self) -> None:
        self.typing.cancel()
        self.session.power_off()

    def change_identity(self, new_identity: str) -> bool:
        changed = self.session.change_identity(new_identity)
        if changed:
            self._append_event(
                make_event(EventType.IDENTITY_CHANGED, {"identity": self.identity.current})
            )
        return changed

    def connect(self, target: str) -> bool:
        return self.session.connect(target)

    def disconnect(self) -> bool:
        if self.session.is_connected:
            self.typing.stop()
        return self.session.disconnect()

    # ------------------------------------------------------------------
    # Conversation actions
    # ------------------------------------------------------------------

    def send_text(self, content: str, reply_to: ReplyReference | str | None = None) -> Message:
        """Send *content*, optionally replying to a message (by reference or id).

        The reply preview is resolved now and never follows later edits.
        Raises NoActiveLink when there is no CONNECTED session.
        """
        if not content.strip():
            raise ValueError("message is empty")
        reference = self._resolve_reply(reply_to)
        message = self.log.append_local_text(content, reference)
        self.typing.stop()
        return message

    def send_file(
        self,
        name: str,
        payload: bytes | bytearray | memoryview,
        mime_type: str | None = None,
    ) -> Message:
        message = self.log.append_local_file(name, payload, mime_type)
        self.typing.stop()
        return message

    def send_file_from_path(self, path: str | Path, mime_type: str | None = None) -> Message:
        source = Path(path)
        return self.send_file(source.name, source.read_bytes(), mime_type)

    def save_file(self, message_id: str, directory: str | Path | None = None) -> Path:
        """Write the payload of a file message to *directory* (default: downloads dir)."""
        message = self.log.get(message_id)
        if message is None or message.file is None or message.file.handle is None:
            raise ValueError(f"message {message_id} carries no file")
        target = message.file.handle.save(
            directory or downloads_dir(), fallback_name=f"file-{message_id}"
        )
        self.diagnostics.info(f"Saved {message.file.name} to {target}")
        return target

    def edit_message(self, message_id: str, content: str) -> bool:
        return self.log.edit_local(message_id, content)

    def delete_message(self, message_id: str) -> bool:
        return self.log.delete_local(message_id)

    def notify_typing(self) -> None:
        """Call on every local input change."""
        if self.session.is_connected:
            self.typing.notify_input()

    def clear_chat(self) -> None:
        self.log.clear()

    def clear_logs(self) -> None:
        self.diagnostics.clear()
        self._append_event(make_event(EventType.LOGS_CLEARED, {}))

    # ------------------------------------------------------------------
    # Presentation events
    # ------------------------------------------------------------------

    def set_event_notify(self, notify_fn: Callable[[], None]) -> None:
        self._event_notify = notify_fn

    def poll_events(self, limit: int = 50) -> list[ChatEventDict]:
        events = self._event_buffer[:limit] if limit > 0 else list(self._event_buffer)
        del self._event_buffer[: len(events)]
        return events

    def list_recent_events(self, limit: int = 50) -> list[ChatEventDict]:
        if limit <= 0:
            return []
        return self._event_history[-limit:]

    # ------------------------------------------------------------------
    # Inbound envelope dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, envelope: Envelope, from_identity: str) -> None:
        handler = self._handlers.get(envelope.kind)
        if handler is None:
            self.diagnostics.warning(f"No handler for envelope kind {envelope.kind}")
            return
        handler(envelope, from_identity)

    def _on_text(self, envelope: Envelope, from_identity: str) -> None:
        assert isinstance(envelope, TextEnvelope)
        self.typing.clear_remote()
        self.log.apply_remote_text(envelope, from_identity)

    def _on_file(self, envelope: Envelope, from_identity: str) -> None:
        assert isinstance(envelope, FileEnvelope)
        self.typing.clear_remote()
        self.log.apply_remote_file(envelope, from_identity)

    def _on_ack(self, envelope: Envelope, from_identity: str) -> None:
        assert isinstance(envelope, AckEnvelope)
        self.log.apply_ack(envelope.message_id)

    def _on_edit(self, envelope: Envelope, from_identity: str) -> None:
        assert isinstance(envelope, EditEnvelope)
        self.log.apply_remote_edit(envelope.message_id, envelope.content)

    def _on_delete(self, envelope: Envelope, from_identity: str) -> None:
        assert isinstance(envelope, DeleteEnvelope)
        self.log.apply_remote_delete(envelope.message_id)

    def _on_typing(self, envelope: Envelope, from_identity: str) -> None:
        assert isinstance(envelope, TypingEnvelope)
        self.typing.set_remote(envelope.is_typing)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve_reply(self, reply_to: ReplyReference | str | None) -> ReplyReference | None:
        if reply_to is None or isinstance(reply_to, ReplyReference):
            return reply_to
        original = self.log.get(reply_to)
        if original is None:
            logger.debug("reply target %s not in log; sending without reference", reply_to)
            return None
        return ReplyReference.from_message(original)

    def _broadcast_typing(self, is_typing: bool) -> None:
        if not self.session.is_connected:
            return
        try:
            self.session.send(TypingEnvelope(is_typing=is_typing))
        except (NoActiveLink, ChannelError) as exc:
            logger.debug("typing signal not sent: %s", exc)

    def _on_transition(
        self, old: ConnectionState, new: ConnectionState, reason: TransitionReason
    ) -> None:
        if new == ConnectionState.CONNECTED:
            self.log.append_system(
                f"Encrypted connection established with {self.session.remote_peer}"
            )
        elif old == ConnectionState.CONNECTED:
            self.typing.cancel()
            self.typing.clear_remote()
            if new != ConnectionState.OFFLINE:
                self.log.append_system(LINK_LOST_MESSAGES.get(reason, "Link closed."))
        if new == ConnectionState.READY and reason == TransitionReason.REGISTERED:
            self.diagnostics.info(SYSTEM_NOTICES["ready"])
        if new == ConnectionState.OFFLINE:
            self.typing.cancel()
            self.typing.clear_remote()
            self.log.append_system(SYSTEM_NOTICES["offline"])
        self._append_event(
            make_event(
                EventType.STATE_CHANGED,
                {
                    "from": old.value,
                    "to": new.value,
                    "reason": reason.value,
                    "identity": self.session.local_identity,
                    "remote_peer": self.session.remote_peer,
                },
            )
        )

    def _on_message_change(self, event_type: EventType, message: Message | None) -> None:
        data = {"message": message_to_dict(message)} if message is not None else {}
        self._append_event(make_event(event_type, data))

    def _on_remote_typing(self, is_typing: bool) -> None:
        self._append_event(make_event(EventType.REMOTE_TYPING, {"is_typing": is_typing}))

    def _on_log_entry(self, entry: LogEntry) -> None:
        self._append_event(make_event(EventType.LOG_ADDED, {"entry": log_entry_to_dict(entry)}))

    def _append_event(self, event: ChatEventDict) -> None:
        self._event_buffer.append(event)
        if len(self._event_buffer) > self._max_events:
            del self._event_buffer[: -self._max_events]
        self._event_history.append(event)
        if len(self._event_history) > self._max_events:
            self._event_history = self._event_history[-self._max_events :]
        if self._event_notify is not None:
            try:
                self._event_notify()
            except Exception:  # noqa: BLE001
                logger.exception("event notify callback failed")
