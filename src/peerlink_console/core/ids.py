"""Pluggable id generators for messages, log entries and identities."""

from __future__ import annotations

import itertools
import secrets
import string
from typing import Callable

BASE36 = string.digits + string.ascii_lowercase


def random_id(length: int = 8) -> str:
    return "".join(secrets.choice(BASE36) for _ in range(length))


def generate_identity() -> str:
    """Short shareable identity: 6 uppercase base-36 characters."""
    return random_id(6).upper()


def sequence_ids(prefix: str = "m") -> Callable[[], str]:
    """Deterministic generator (``m1``, ``m2``, ...) for tests and replays."""
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"
