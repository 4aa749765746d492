"""Channel envelope vocabulary and its structured wire form.

The wire form is a flat dict tagged by ``type``::

    {"type": "text", "content": str, "replyTo"?: {id, sender, content}, "id"?: str}
    {"type": "file", "id": str, "name": str, "size": int, "mimeType": str, "payload": bytes}
    {"type": "ack", "messageId": str}
    {"type": "edit", "messageId": str, "content": str}
    {"type": "delete", "messageId": str}
    {"type": "typing", "isTyping": bool}

``kind`` is accepted in place of ``type`` on decode. Values are never coerced:
a string where a number is expected is a :class:`DecodeError`.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Union

from peerlink_console.core.enums import EnvelopeKind, Sender
from peerlink_console.core.errors import DecodeError
from peerlink_console.core.models import ReplyReference


@dataclass(slots=True, frozen=True)
class TextEnvelope:
    kind: ClassVar[EnvelopeKind] = EnvelopeKind.TEXT

    content: str
    reply_to: ReplyReference | None = None
    id: str | None = None


@dataclass(slots=True, frozen=True)
class FileEnvelope:
    kind: ClassVar[EnvelopeKind] = EnvelopeKind.FILE

    id: str
    name: str
    size: int
    mime_type: str
    payload: bytes

    def __repr__(self) -> str:
        return (
            f"FileEnvelope(id={self.id!r}, name={self.name!r}, size={self.size}, "
            f"mime_type={self.mime_type!r})"
        )


@dataclass(slots=True, frozen=True)
class AckEnvelope:
    kind: ClassVar[EnvelopeKind] = EnvelopeKind.ACK

    message_id: str


@dataclass(slots=True, frozen=True)
class EditEnvelope:
    kind: ClassVar[EnvelopeKind] = EnvelopeKind.EDIT

    message_id: str
    content: str


@dataclass(slots=True, frozen=True)
class DeleteEnvelope:
    kind: ClassVar[EnvelopeKind] = EnvelopeKind.DELETE

    message_id: str


@dataclass(slots=True, frozen=True)
class TypingEnvelope:
    kind: ClassVar[EnvelopeKind] = EnvelopeKind.TYPING

    is_typing: bool


Envelope = Union[
    TextEnvelope, FileEnvelope, AckEnvelope, EditEnvelope, DeleteEnvelope, TypingEnvelope
]


# ------------------------------------------------------------------
# Field readers
# ------------------------------------------------------------------


def _str(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str):
        raise DecodeError(f"field {key!r} must be a string")
    return value


def _id(raw: Mapping[str, Any], key: str) -> str:
    value = _str(raw, key)
    if not value:
        raise DecodeError(f"field {key!r} must not be empty")
    return value


def _size(raw: Mapping[str, Any], key: str) -> int:
    value = raw.get(key)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise DecodeError(f"field {key!r} must be a non-negative integer")
    return value


def _bool(raw: Mapping[str, Any], key: str) -> bool:
    value = raw.get(key)
    if not isinstance(value, bool):
        raise DecodeError(f"field {key!r} must be a boolean")
    return value


def _bytes(raw: Mapping[str, Any], key: str) -> bytes:
    value = raw.get(key)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise DecodeError(f"field {key!r} must be bytes")


def _reply(raw: Mapping[str, Any]) -> ReplyReference | None:
    value = raw.get("replyTo", raw.get("replyReference"))
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise DecodeError("field 'replyTo' must be an object")
    try:
        sender = Sender(_str(value, "sender"))
    except ValueError as exc:
        raise DecodeError(f"unknown reply sender {value.get('sender')!r}") from exc
    return ReplyReference(id=_id(value, "id"), sender=sender, content=_str(value, "content"))


# ------------------------------------------------------------------
# Per-kind decoders
# ------------------------------------------------------------------


def _decode_text(raw: Mapping[str, Any]) -> TextEnvelope:
    message_id = raw.get("id")
    if message_id is not None:
        message_id = _id(raw, "id")
    return TextEnvelope(content=_str(raw, "content"), reply_to=_reply(raw), id=message_id)


def _decode_file(raw: Mapping[str, Any]) -> FileEnvelope:
    return FileEnvelope(
        id=_id(raw, "id"),
        name=_str(raw, "name"),
        size=_size(raw, "size"),
        mime_type=_str(raw, "mimeType"),
        payload=_bytes(raw, "payload"),
    )


def _decode_ack(raw: Mapping[str, Any]) -> AckEnvelope:
    return AckEnvelope(message_id=_id(raw, "messageId"))


def _decode_edit(raw: Mapping[str, Any]) -> EditEnvelope:
    return EditEnvelope(message_id=_id(raw, "messageId"), content=_str(raw, "content"))


def _decode_delete(raw: Mapping[str, Any]) -> DeleteEnvelope:
    return DeleteEnvelope(message_id=_id(raw, "messageId"))


def _decode_typing(raw: Mapping[str, Any]) -> TypingEnvelope:
    return TypingEnvelope(is_typing=_bool(raw, "isTyping"))


DECODERS: dict[EnvelopeKind, Callable[[Mapping[str, Any]], Envelope]] = {
    EnvelopeKind.TEXT: _decode_text,
    EnvelopeKind.FILE: _decode_file,
    EnvelopeKind.ACK: _decode_ack,
    EnvelopeKind.EDIT: _decode_edit,
    EnvelopeKind.DELETE: _decode_delete,
    EnvelopeKind.TYPING: _decode_typing,
}


def decode(raw: Any) -> Envelope:
    """Validate a structured payload and return the matching envelope.

    Raises :class:`DecodeError` for anything that is not a well-formed
    envelope of a known kind.
    """
    if not isinstance(raw, Mapping):
        raise DecodeError(f"payload must be an object, got {type(raw).__name__}")
    tag = raw.get("type", raw.get("kind"))
    if not isinstance(tag, str):
        raise DecodeError("payload has no envelope kind")
    try:
        kind = EnvelopeKind(tag)
    except ValueError as exc:
        raise DecodeError(f"unknown envelope kind {tag!r}") from exc
    return DECODERS[kind](raw)


def encode(envelope: Envelope) -> dict[str, Any]:
    """Return the structured wire form of *envelope*."""
    if isinstance(envelope, TextEnvelope):
        data: dict[str, Any] = {"type": envelope.kind.value, "content": envelope.content}
        if envelope.reply_to is not None:
            data["replyTo"] = {
                "id": envelope.reply_to.id,
                "sender": envelope.reply_to.sender.value,
                "content": envelope.reply_to.content,
            }
        if envelope.id is not None:
            data["id"] = envelope.id
        return data
    if isinstance(envelope, FileEnvelope):
        return {
            "type": envelope.kind.value,
            "id": envelope.id,
            "name": envelope.name,
            "size": envelope.size,
            "mimeType": envelope.mime_type,
            "payload": envelope.payload,
        }
    if isinstance(envelope, AckEnvelope):
        return {"type": envelope.kind.value, "messageId": envelope.message_id}
    if isinstance(envelope, EditEnvelope):
        return {
            "type": envelope.kind.value,
            "messageId": envelope.message_id,
            "content": envelope.content,
        }
    if isinstance(envelope, DeleteEnvelope):
        return {"type": envelope.kind.value, "messageId": envelope.message_id}
    if isinstance(envelope, TypingEnvelope):
        return {"type": envelope.kind.value, "isTyping": envelope.is_typing}
    raise TypeError(f"not an envelope: {envelope!r}")


# ------------------------------------------------------------------
# JSON framing (for byte-oriented transports)
# ------------------------------------------------------------------


def encode_json(envelope: Envelope) -> bytes:
    data = encode(envelope)
    if isinstance(envelope, FileEnvelope):
        data["payload"] = base64.b64encode(envelope.payload).decode("ascii")
    return json.dumps(data, ensure_ascii=False).encode("utf-8")


def decode_json(data: bytes | str) -> Envelope:
    try:
        raw = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"invalid JSON payload: {exc}") from exc
    if isinstance(raw, dict) and raw.get("type", raw.get("kind")) == EnvelopeKind.FILE:
        payload = raw.get("payload")
        if not isinstance(payload, str):
            raise DecodeError("field 'payload' must be base64 text")
        try:
            raw["payload"] = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError(f"field 'payload' is not valid base64: {exc}") from exc
    return decode(raw)
