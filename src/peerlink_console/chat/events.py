"""Presentation events and their JSON-friendly payloads."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from peerlink_console.core.enums import EventType
from peerlink_console.core.models import LogEntry, Message
from peerlink_console.core.time import format_clock
from peerlink_console.core.types import ChatEventDict


def make_event(event_type: EventType, data: dict[str, Any]) -> ChatEventDict:
    return {"type": event_type, "at": datetime.now(UTC).isoformat(), "data": data}


def message_to_dict(message: Message) -> dict[str, Any]:
    """Flatten a message for display; tombstones carry no content."""
    data: dict[str, Any] = {
        "id": message.id,
        "sender": message.sender.value,
        "sender_identity": message.sender_identity,
        "content": message.visible_content,
        "kind": message.kind.value,
        "created_at": message.created_at.isoformat(),
        "clock": format_clock(message.created_at),
        "status": message.status.value if message.status else None,
        "edited": message.edited,
        "deleted": message.deleted,
    }
    if message.reply_to is not None:
        data["reply_to"] = {
            "id": message.reply_to.id,
            "sender": message.reply_to.sender.value,
            "content": message.reply_to.content,
        }
    if message.file is not None:
        data["file"] = {
            "name": message.file.name,
            "size": message.file.size,
            "mime_type": message.file.mime_type,
        }
    return data


def log_entry_to_dict(entry: LogEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "message": entry.message,
        "severity": entry.severity.value,
        "timestamp": entry.timestamp.isoformat(),
        "clock": format_clock(entry.timestamp),
    }
