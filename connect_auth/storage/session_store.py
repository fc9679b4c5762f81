"""
Local session marker persistence.

Holds the single ``{timestamp, userId}`` record that says "a subject is
signed in to this context", independently of the provider's own state.
"""

import logging
from typing import Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from connect_auth.schemas.auth import SessionRecord, now_millis
from connect_auth.storage.base import KeyValueStorage

logger = logging.getLogger(__name__)

USER_SESSION_KEY = "connect_mart_auth_session"


class SessionStore:
    """Reads and writes the session record in a per-context storage."""

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = USER_SESSION_KEY,
        clock: Callable[[], int] = now_millis,
    ):
        """
        Initialize SessionStore.

        Args:
            storage: Per-context storage (session storage in a browser)
            key: Slot name for the record
            clock: Epoch-millis source for record timestamps
        """
        self._storage = storage
        self._key = key
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    def exists(self) -> bool:
        """
        True if any value occupies the slot.

        A corrupt value still counts: the marker is a presence check.
        """
        return self._storage.get_item(self._key) is not None

    def read(self) -> Optional[SessionRecord]:
        raw = self._storage.get_item(self._key)
        if raw is None:
            return None
        try:
            return SessionRecord.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning(f"Malformed session record under {self._key}: {e}")
            return None

    def write(self, subject_id: str) -> SessionRecord:
        record = SessionRecord(timestamp=self._clock(), subject_id=subject_id)
        self._storage.set_item(self._key, record.to_json())
        return record

    def clear(self) -> None:
        self._storage.remove_item(self._key)
