"""
Storage package - settings and session state persistence.
"""

from storage.models import Settings, SessionState, SyncedData
from storage.store import PersistedStore, JsonFileBackend, MemoryBackend

__all__ = [
    "Settings",
    "SessionState",
    "SyncedData",
    "PersistedStore",
    "JsonFileBackend",
    "MemoryBackend",
]
