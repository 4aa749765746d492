"""Timezone-aware timestamp helpers for display."""

from __future__ import annotations

from datetime import datetime, timezone


def to_local(dt: datetime) -> datetime:
    """Convert a datetime to the system local timezone.

    Treats naive datetimes as UTC (all internal timestamps use UTC).
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone()


def format_clock(dt: datetime) -> str:
    """HH:MM:SS in local time, as shown next to log entries."""
    return to_local(dt).strftime("%H:%M:%S")
