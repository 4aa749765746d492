from __future__ import annotations

import sqlite3

IDENTITY_KEY = "identity"


class SettingsStore:
    """Key-value settings backed by the ``settings`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, value),
        )
        self._conn.commit()

    def load_identity(self) -> str | None:
        return self.get(IDENTITY_KEY)

    def save_identity(self, identity: str) -> None:
        self.set(IDENTITY_KEY, identity)
