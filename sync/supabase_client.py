"""
SettingsSync - Supabase mirror for the synchronized settings partition.

Keeps settings and the extreme-mode lock-in flag consistent across the
user's machines. The local settings file stays the source the controller
reads; this client only pulls on startup and pushes after every write.

Works offline gracefully: the last pulled value is cached next to the
settings file and returned when Supabase cannot be reached.
"""

import json
import logging
import platform
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import config
from storage.models import Settings, SyncedData

logger = logging.getLogger(__name__)


class SettingsSync:
    """
    Supabase client wrapper for the settings partition.

    Table layout (one row per user, keyed by user_id via row level security):
        settings        jsonb   camelCase settings object
        emergency_used  boolean lock-in flag
        updated_at      timestamptz
        device          text    hostname of the last writer
    """

    def __init__(self, supabase_url: str = "", supabase_key: str = "",
                 cache_file: Optional[Path] = None, client: Any = None) -> None:
        """
        Initialise the sync client.

        Args:
            supabase_url: Supabase project URL (falls back to config).
            supabase_key: Supabase anon/public key (falls back to config).
            cache_file: Offline cache location.
            client: Pre-built Supabase client (tests).
        """
        self._url = supabase_url or config.SUPABASE_URL
        self._key = supabase_key or config.SUPABASE_ANON_KEY
        self.table = config.SUPABASE_SETTINGS_TABLE
        self.cache_file: Path = cache_file or (config.USER_DATA_DIR / "settings_cache.json")

        self._client = client
        if self._client is None:
            self._init_client()

    def _init_client(self) -> None:
        """Create the Supabase client if credentials are available."""
        if not self._url or not self._key:
            logger.info("Supabase credentials not configured - settings sync disabled")
            return
        try:
            from supabase import create_client
            self._client = create_client(self._url, self._key)
            logger.info("Supabase settings sync initialised")
        except Exception as e:
            logger.warning(f"Failed to initialise Supabase client: {e}")

    def pull(self) -> Optional[SyncedData]:
        """
        Fetch settings and the lock-in flag.

        Returns:
            Remote (or cached) partition contents, or None if neither exists.
        """
        if not self._client:
            return self._load_cached()

        try:
            result = (
                self._client.table(self.table)
                .select("settings, emergency_used")
                .maybe_single()
                .execute()
            )
            row = (result.data if result else None) or {}
            if not row:
                return self._load_cached()
            synced = SyncedData(
                settings=Settings.from_dict(row.get("settings")),
                emergency_used=row.get("emergency_used") is True,
            )
            self._cache(synced)
            return synced
        except Exception as e:
            logger.warning(f"Failed to fetch settings from cloud, using cache: {e}")
            return self._load_cached()

    def push(self, settings: Settings, emergency_used: bool) -> bool:
        """
        Upsert the partition contents.

        Returns:
            True if the cloud accepted the write.
        """
        synced = SyncedData(settings=settings, emergency_used=emergency_used)
        self._cache(synced)
        if not self._client:
            return False
        try:
            self._client.table(self.table).upsert({
                "settings": settings.to_dict(),
                "emergency_used": emergency_used,
                "updated_at": datetime.now(timezone.utc).isoformat(),
                "device": platform.node(),
            }).execute()
            logger.debug("Settings pushed to cloud")
            return True
        except Exception as e:
            logger.warning(f"Failed to push settings to cloud: {e}")
            return False

    def _cache(self, synced: SyncedData) -> None:
        """Cache settings locally for offline use."""
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(json.dumps(self._to_row(synced), indent=2))
        except Exception as e:
            logger.debug(f"Could not cache settings: {e}")

    def _load_cached(self) -> Optional[SyncedData]:
        """Load cached settings (offline fallback)."""
        try:
            if self.cache_file.exists():
                row = json.loads(self.cache_file.read_text())
                if isinstance(row, dict):
                    return SyncedData(
                        settings=Settings.from_dict(row.get("settings")),
                        emergency_used=row.get("emergency_used") is True,
                    )
        except Exception as e:
            logger.debug(f"Could not read settings cache: {e}")
        return None

    @staticmethod
    def _to_row(synced: SyncedData) -> Dict[str, Any]:
        return {
            "settings": synced.settings.to_dict(),
            "emergency_used": synced.emergency_used,
        }
