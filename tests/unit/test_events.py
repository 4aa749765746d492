from __future__ import annotations

import re
from datetime import UTC, datetime

from peerlink_console.chat.events import log_entry_to_dict, make_event, message_to_dict
from peerlink_console.core.enums import DeliveryStatus, EventType, MessageKind, Sender, Severity
from peerlink_console.core.models import FileMeta, LogEntry, Message, ReplyReference
from peerlink_console.core.time import to_local


def test_message_to_dict_omits_file_payload() -> None:
    message = Message(
        id="f1",
        sender=Sender.LOCAL,
        content="Sending file: a.txt",
        kind=MessageKind.FILE,
        status=DeliveryStatus.SENDING,
        reply_to=ReplyReference(id="m1", sender=Sender.REMOTE, content="send it"),
        file=FileMeta(name="a.txt", size=3, mime_type="text/plain"),
    )

    data = message_to_dict(message)

    assert data["status"] == "sending"
    assert data["file"] == {"name": "a.txt", "size": 3, "mime_type": "text/plain"}
    assert data["reply_to"]["content"] == "send it"
    assert re.fullmatch(r"\d\d:\d\d:\d\d", data["clock"])


def test_log_entry_and_event_shape() -> None:
    entry = LogEntry(id="l1", message="Carrier signal lost.", severity=Severity.WARNING)
    event = make_event(EventType.LOG_ADDED, {"entry": log_entry_to_dict(entry)})

    assert event["type"] == "log_added"
    assert event["data"]["entry"]["severity"] == "warning"
    assert "at" in event


def test_to_local_treats_naive_as_utc() -> None:
    naive = datetime(2024, 1, 1, 12, 0, 0)
    aware = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
    assert to_local(naive) == to_local(aware)
