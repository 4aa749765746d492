from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_TYPING_DEBOUNCE = 1.5
DEFAULT_AUTO_CONNECT_DELAY = 0.5
DEFAULT_MAX_EVENTS = 500


@dataclass(slots=True)
class ChatConfig:
    typing_debounce: float = DEFAULT_TYPING_DEBOUNCE
    auto_connect_delay: float = DEFAULT_AUTO_CONNECT_DELAY
    # Connect-by-link target, consumed once at the first READY
    connect_target: str | None = None
    db_path: str | None = None
    max_events: int = DEFAULT_MAX_EVENTS

    def to_log_string(self) -> str:
        return (
            f"typing_debounce={self.typing_debounce} "
            f"auto_connect_delay={self.auto_connect_delay} "
            f"connect_target={self.connect_target or '-'} "
            f"db_path={self.db_path or '<default>'} max_events={self.max_events}"
        )


def load_chat_config(connect_target: str | None = None) -> ChatConfig:
    target = connect_target or os.environ.get("PEERLINK_CONNECT") or None
    return ChatConfig(
        typing_debounce=_env_float("PEERLINK_TYPING_DEBOUNCE", DEFAULT_TYPING_DEBOUNCE),
        auto_connect_delay=_env_float("PEERLINK_AUTO_CONNECT_DELAY", DEFAULT_AUTO_CONNECT_DELAY),
        connect_target=target.strip() if target else None,
        db_path=os.environ.get("PEERLINK_DB_PATH") or None,
        max_events=_env_int("PEERLINK_MAX_EVENTS", DEFAULT_MAX_EVENTS, minimum=1),
    )


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default
