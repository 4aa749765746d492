"""Logging for peerlink-console.

Two sinks hang off the root logger: stderr at a user-chosen level, and a
rotating DEBUG file in the XDG state directory that ``export-logs`` reads
back for bug reports. Diagnostic log entries reach both through
:func:`severity_to_level`.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TextIO

from .paths import state_dir

LOG_DIR = state_dir()
LOG_FILE = LOG_DIR / "app.log"
LOG_FORMAT = "[%(name)s] %(message)s"
FILE_LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
MAX_BYTES = 1_000_000
BACKUP_COUNT = 3
DEFAULT_LEVEL = "INFO"

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

SEVERITY_LEVELS: dict[str, int] = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_stderr_handler: logging.StreamHandler | None = None
_configured = False


def _level_name(candidate: str | None) -> str | None:
    if not candidate:
        return None
    name = candidate.strip().upper()
    return name if name in VALID_LEVELS else None


def configure_logging(console_level: str | None = None) -> None:
    """Attach the stderr and rotating-file handlers to the root logger once.

    ``LOG_LEVEL`` in the environment overrides *console_level*; with neither
    set stderr shows INFO and above. The file always records DEBUG.
    """
    global _stderr_handler, _configured  # noqa: PLW0603

    if _configured:
        return

    level = _level_name(os.environ.get("LOG_LEVEL")) or _level_name(console_level) or DEFAULT_LEVEL

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    stream = logging.StreamHandler(sys.stderr)
    stream.setLevel(level)
    stream.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(stream)
    _stderr_handler = stream

    LOG_DIR.mkdir(parents=True, exist_ok=True)
    rotating = RotatingFileHandler(LOG_FILE, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT)
    rotating.setLevel(logging.DEBUG)
    rotating.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    root.addHandler(rotating)

    _configured = True
    logging.getLogger(__name__).debug("logging to %s (stderr level %s)", LOG_FILE, level)


def severity_to_level(severity: str) -> int:
    """Map a diagnostic severity onto a stdlib logging level."""
    return SEVERITY_LEVELS.get(severity, logging.INFO)


def get_log_files_chronological() -> list[Path]:
    """Rotated backups oldest first, then the live file."""
    candidates = [LOG_FILE.with_suffix(f".log.{n}") for n in range(BACKUP_COUNT, 0, -1)]
    candidates.append(LOG_FILE)
    return [path for path in candidates if path.exists()]


def _copy_logs(out: TextIO) -> None:
    for path in get_log_files_chronological():
        with path.open() as src:
            shutil.copyfileobj(src, out)


def export_logs_to_path(dest: str | Path) -> Path:
    dest = Path(dest)
    with dest.open("w") as out:
        _copy_logs(out)
    return dest


def export_logs_to_stdout() -> None:
    _copy_logs(sys.stdout)
