"""Diagnostic log: the user-facing record of what the link is doing.

Entries are append-only until the user clears them, and each one is mirrored
to the stdlib logging tree so it also lands in the rotating app log.
"""

from __future__ import annotations

import logging
from typing import Callable

from peerlink_console.core.enums import Severity
from peerlink_console.core.ids import random_id
from peerlink_console.core.models import LogEntry
from peerlink_console.core.types import IdFactory

from .logging_setup import severity_to_level

logger = logging.getLogger(__name__)


class DiagnosticLog:
    def __init__(
        self,
        *,
        id_factory: IdFactory | None = None,
        on_entry: Callable[[LogEntry], None] | None = None,
    ) -> None:
        self._entries: list[LogEntry] = []
        self._id_factory = id_factory or random_id
        self._on_entry = on_entry

    def add(self, message: str, severity: Severity = Severity.INFO) -> LogEntry:
        entry = LogEntry(id=self._id_factory(), message=message, severity=severity)
        self._entries.append(entry)
        logger.log(severity_to_level(severity), "%s", message)
        if self._on_entry is not None:
            self._on_entry(entry)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.add(message, Severity.INFO)

    def success(self, message: str) -> LogEntry:
        return self.add(message, Severity.SUCCESS)

    def warning(self, message: str) -> LogEntry:
        return self.add(message, Severity.WARNING)

    def error(self, message: str) -> LogEntry:
        return self.add(message, Severity.ERROR)

    def entries(self, limit: int = 0) -> list[LogEntry]:
        if limit > 0:
            return self._entries[-limit:]
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self.warning("System logs purged.")

    def __len__(self) -> int:
        return len(self._entries)
