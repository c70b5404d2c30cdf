"""
Lock-in ratchet for extreme mode.

Once the emergency flag is set (extreme mode was switched off after being
on), extreme mode can no longer be disabled through the settings path:
every load and every change that finds it off is corrected back on.
A full settings reset is the only way to clear the flag.
"""

import logging
from typing import Tuple

from storage.models import Settings, SyncedData
from storage.store import PersistedStore

logger = logging.getLogger(__name__)


class LockInGuard:
    """Enforces the extreme-mode ratchet on settings the core observes."""

    @staticmethod
    def enforce(settings: Settings, emergency_used: bool) -> Tuple[Settings, bool]:
        """
        Apply the ratchet to a settings value.

        Returns:
            (effective settings, whether a correction was made)
        """
        if emergency_used and not settings.extreme_mode_enabled:
            return settings.with_changes(extreme_mode_enabled=True), True
        return settings, False

    def apply(self, synced: SyncedData, store: PersistedStore) -> Settings:
        """
        Enforce the ratchet and persist any correction immediately.

        Args:
            synced: Settings + flag as just loaded or received.
            store: Store to write the correction through.

        Returns:
            The effective settings.
        """
        settings, corrected = self.enforce(synced.settings, synced.emergency_used)
        if corrected:
            logger.info("Extreme mode is locked in; re-enabling it")
            store.save_synced(settings=settings)
        return settings
