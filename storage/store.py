"""
Persisted key-value store for ScrollGuard.

Two partitions:
- synchronized: user settings + the lock-in flag. Editable by other
  processes (options CLI) and optionally mirrored to Supabase.
- local: session timing state, owned by the controller.

Each partition is a backend holding one JSON object. File backends use
atomic writes (temp file + rename) so a crash mid-save never leaves a
truncated file behind.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import config
from storage.models import Settings, SessionState, SyncedData

logger = logging.getLogger(__name__)

SettingsListener = Callable[[SyncedData], None]


class MemoryBackend:
    """Partition kept in memory (tests and ephemeral runs)."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(data or {})

    def read(self) -> Dict[str, Any]:
        return json.loads(json.dumps(self._data))

    def write(self, data: Dict[str, Any]) -> None:
        self._data = json.loads(json.dumps(data))

    def changed_externally(self) -> bool:
        return False


class JsonFileBackend:
    """Partition stored as a JSON object in a single file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._seen_mtime: Optional[int] = self._mtime()

    def _mtime(self) -> Optional[int]:
        try:
            return self.path.stat().st_mtime_ns
        except OSError:
            return None

    def read(self) -> Dict[str, Any]:
        """
        Load the partition.

        Returns:
            The stored object, or {} if the file is missing or unreadable.
        """
        with self._lock:
            self._seen_mtime = self._mtime()
            if not self.path.exists():
                return {}
            try:
                with open(self.path, 'r') as f:
                    data = json.load(f)
            except (json.JSONDecodeError, IOError, OSError) as e:
                logger.warning(f"Failed to load {self.path.name}: {e}. Using defaults.")
                return {}
            if not isinstance(data, dict):
                logger.warning(f"{self.path.name} does not hold an object. Using defaults.")
                return {}
            return data

    def write(self, data: Dict[str, Any]) -> None:
        """Save the partition atomically."""
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                temp_fd, temp_path = tempfile.mkstemp(
                    suffix='.tmp',
                    prefix=self.path.stem + '_',
                    dir=self.path.parent
                )
                try:
                    with os.fdopen(temp_fd, 'w') as f:
                        json.dump(data, f, indent=2)
                    os.replace(temp_path, self.path)
                except Exception:
                    try:
                        os.unlink(temp_path)
                    except OSError:
                        pass
                    raise
                self._seen_mtime = self._mtime()
            except (IOError, OSError, PermissionError) as e:
                logger.error(f"Failed to save {self.path.name}: {e}")

    def changed_externally(self) -> bool:
        """True if another process rewrote the file since our last read/write."""
        return self._mtime() != self._seen_mtime


class PersistedStore:
    """
    Settings + state store used by the controller and the options surface.

    Writes are synchronous: once a save method returns, the next load
    observes the new value.
    """

    def __init__(self, synced_backend, local_backend, sync_client: Any = None):
        self.synced_backend = synced_backend
        self.local_backend = local_backend
        self._sync_client = sync_client
        self._listeners: List[SettingsListener] = []

    @classmethod
    def from_files(cls, settings_file: Path = None, state_file: Path = None,
                   sync_client: Any = None) -> "PersistedStore":
        """Create a store backed by the configured JSON files."""
        return cls(
            JsonFileBackend(settings_file or config.SETTINGS_FILE),
            JsonFileBackend(state_file or config.STATE_FILE),
            sync_client=sync_client,
        )

    @classmethod
    def in_memory(cls) -> "PersistedStore":
        return cls(MemoryBackend(), MemoryBackend())

    # ------------------------------------------------------------------
    # Synchronized partition
    # ------------------------------------------------------------------

    def pull_remote(self) -> bool:
        """
        Refresh the synchronized partition from the sync client, if any.

        Returns:
            True if remote data was fetched and stored locally.
        """
        if not self._sync_client:
            return False
        remote = self._sync_client.pull()
        if remote is None:
            return False
        data = self.synced_backend.read()
        data[config.KEY_SETTINGS] = remote.settings.to_dict()
        # The lock-in flag only ever moves forward through a pull
        data[config.KEY_EMERGENCY_USED] = (
            remote.emergency_used or data.get(config.KEY_EMERGENCY_USED) is True
        )
        self.synced_backend.write(data)
        return True

    def load_synced(self) -> SyncedData:
        """Load settings (merged over defaults) and the lock-in flag."""
        data = self.synced_backend.read()
        emergency = data.get(config.KEY_EMERGENCY_USED, False)
        if not isinstance(emergency, bool):
            logger.warning(f"Ignoring invalid lock-in flag {emergency!r}")
            emergency = False
        return SyncedData(
            settings=Settings.from_dict(data.get(config.KEY_SETTINGS)),
            emergency_used=emergency,
        )

    def save_synced(self, settings: Optional[Settings] = None,
                    emergency_used: Optional[bool] = None) -> SyncedData:
        """
        Write settings and/or the lock-in flag, then notify listeners.

        Args:
            settings: New settings, or None to keep the stored ones.
            emergency_used: New flag value, or None to keep the stored one.

        Returns:
            The partition contents after the write.
        """
        data = self.synced_backend.read()
        if settings is not None:
            data[config.KEY_SETTINGS] = settings.to_dict()
        if emergency_used is not None:
            data[config.KEY_EMERGENCY_USED] = emergency_used
        self.synced_backend.write(data)

        synced = self.load_synced()
        if self._sync_client:
            try:
                self._sync_client.push(synced.settings, synced.emergency_used)
            except Exception as e:
                logger.warning(f"Settings sync push failed: {e}")
        self._notify(synced)
        return synced

    def add_settings_listener(self, listener: SettingsListener) -> None:
        """Register a callback fired after every synchronized write."""
        self._listeners.append(listener)

    def poll_settings_changes(self) -> Optional[SyncedData]:
        """
        Detect edits made by another process.

        Returns:
            The new partition contents if the backing file changed, else None.
        """
        if not self.synced_backend.changed_externally():
            return None
        synced = self.load_synced()
        logger.debug("Settings changed outside this process")
        self._notify(synced)
        return synced

    def _notify(self, synced: SyncedData) -> None:
        for listener in list(self._listeners):
            try:
                listener(synced)
            except Exception as e:
                logger.debug(f"Settings listener error: {e}")

    # ------------------------------------------------------------------
    # Local partition
    # ------------------------------------------------------------------

    def load_state(self) -> SessionState:
        return SessionState.from_dict(self.local_backend.read())

    def save_state(self, state: SessionState) -> None:
        self.local_backend.write(state.to_dict())
