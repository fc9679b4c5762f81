"""
Storage module - Key/value backends, the session marker and the
cross-context channel.
"""

from connect_auth.storage.base import KeyValueStorage, MemoryStorage, FileStorage
from connect_auth.storage.session_store import SessionStore, USER_SESSION_KEY
from connect_auth.storage.channel import (
    StorageEvent,
    StorageChannel,
    BroadcastHub,
    HubChannel,
)

__all__ = [
    "KeyValueStorage",
    "MemoryStorage",
    "FileStorage",
    "SessionStore",
    "USER_SESSION_KEY",
    "StorageEvent",
    "StorageChannel",
    "BroadcastHub",
    "HubChannel",
]
