"""SQLite settings database with forward-only schema migrations."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from .paths import db_path

logger = logging.getLogger(__name__)

# MIGRATIONS[n] upgrades a database at schema version n to n + 1.
MIGRATIONS: list[tuple[str, ...]] = [
    (
        "CREATE TABLE schema_version (version INTEGER NOT NULL)",
        "INSERT INTO schema_version (version) VALUES (0)",
        "CREATE TABLE settings (key TEXT PRIMARY KEY, value TEXT NOT NULL)",
    ),
]

SCHEMA_VERSION = len(MIGRATIONS)


def schema_version(conn: sqlite3.Connection) -> int:
    """Version recorded in the database; 0 for a blank file."""
    try:
        row = conn.execute("SELECT version FROM schema_version").fetchone()
    except sqlite3.OperationalError:
        return 0
    return row[0] if row else 0


def migrate(conn: sqlite3.Connection) -> int:
    """Apply outstanding migrations in one transaction. Returns the new version."""
    start = schema_version(conn)
    if start >= SCHEMA_VERSION:
        return start
    logger.info("migrating settings database v%d -> v%d", start, SCHEMA_VERSION)
    with conn:
        for statements in MIGRATIONS[start:]:
            for statement in statements:
                conn.execute(statement)
        conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))
    return SCHEMA_VERSION


def open_db(path: str | Path | None = None) -> sqlite3.Connection:
    """Open the settings database (XDG state dir by default), migrating as needed.

    ``":memory:"`` gives a throwaway database.
    """
    if str(path) == ":memory:":
        conn = sqlite3.connect(":memory:")
    else:
        target = db_path() if path is None else Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(target))
        conn.execute("PRAGMA journal_mode=WAL")
    migrate(conn)
    return conn
