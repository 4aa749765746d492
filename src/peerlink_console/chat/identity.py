from __future__ import annotations

import logging
from typing import Callable

from peerlink_console.core.errors import IdentityCollision, PeerlinkError, RegistrationFailure
from peerlink_console.core.ids import generate_identity

from .settings_store import SettingsStore

logger = logging.getLogger(__name__)

# Error type reported by PeerJS-style brokers when an id is already claimed
UNAVAILABLE_ID = "unavailable-id"


class IdentityManager:
    """Owns the node's chosen identity string and its persistence.

    The identity is read once at startup. A first run with nothing stored
    generates a short random identity and persists it immediately.
    """

    def __init__(
        self,
        store: SettingsStore | None = None,
        *,
        preferred: str | None = None,
        generate: Callable[[], str] = generate_identity,
    ) -> None:
        self._store = store
        identity = preferred.strip() if preferred else ""
        if not identity and store is not None:
            identity = (store.load_identity() or "").strip()
        if not identity:
            identity = generate()
            logger.info("generated new identity %s", identity)
        self._current = identity
        self._persist()

    @property
    def current(self) -> str:
        return self._current

    def change(self, new_identity: str) -> bool:
        """Adopt and persist *new_identity*.

        Returns False when it is the identity already in use. Raises
        ValueError when it is blank.
        """
        candidate = validate_identity(new_identity)
        if candidate == self._current:
            return False
        self._current = candidate
        self._persist()
        logger.info("identity changed to %s", candidate)
        return True

    def classify_error(self, exc: Exception) -> PeerlinkError:
        """Map a transport registration error onto the error taxonomy."""
        if isinstance(exc, (IdentityCollision, RegistrationFailure)):
            return exc
        if getattr(exc, "type", None) == UNAVAILABLE_ID:
            return IdentityCollision(self._current)
        return RegistrationFailure(str(exc) or type(exc).__name__)

    def _persist(self) -> None:
        if self._store is not None:
            self._store.save_identity(self._current)


def validate_identity(value: str) -> str:
    candidate = value.strip()
    if not candidate:
        raise ValueError("identity must not be empty")
    return candidate
