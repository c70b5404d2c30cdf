"""
Options surface: the only sanctioned way to edit settings.

Validates user input before it reaches the store, and records the
lock-in flag when extreme mode is switched off after being on. The
running controller then sees the flag and forces extreme mode back on.
"""

import logging
from typing import Any, Dict

import config
from storage.models import Settings, SyncedData
from storage.store import PersistedStore

logger = logging.getLogger(__name__)

_BOOL_KEYS = ("enabled", "extremeModeEnabled", "showDebugCountdown")


class SettingsValidationError(ValueError):
    """User-supplied settings rejected at the configuration boundary."""


def validate_settings(updates: Dict[str, Any]) -> None:
    """
    Check a partial settings update.

    Raises:
        SettingsValidationError: With a message suitable for showing to the user.
    """
    for key in updates:
        if key not in config.DEFAULT_SETTINGS:
            raise SettingsValidationError(f"Unknown setting: {key}")

    if "timeLimitMinutes" in updates:
        limit = updates["timeLimitMinutes"]
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < config.MIN_TIME_LIMIT_MINUTES:
            raise SettingsValidationError("Time limit must be at least 1 minute.")

    if "extremeDurationMinutes" in updates:
        duration = updates["extremeDurationMinutes"]
        if (isinstance(duration, bool) or not isinstance(duration, int)
                or duration < config.MIN_EXTREME_DURATION_MINUTES):
            raise SettingsValidationError("Extreme mode duration must be at least 5 minutes.")

    for key in _BOOL_KEYS:
        if key in updates and not isinstance(updates[key], bool):
            raise SettingsValidationError(f"{key} must be true or false.")


def save_options(store: PersistedStore, updates: Dict[str, Any]) -> SyncedData:
    """
    Validate and merge an update over the stored settings.

    Turning extreme mode off while it is on sets the lock-in flag in the
    same write.

    Returns:
        The partition contents after the write.
    """
    validate_settings(updates)
    current = store.load_synced()
    merged = dict(current.settings.to_dict())
    merged.update(updates)
    new_settings = Settings.from_dict(merged)

    emergency_used = current.emergency_used
    if current.settings.extreme_mode_enabled and not new_settings.extreme_mode_enabled:
        if not emergency_used:
            logger.info("Extreme mode switched off; locking it in from now on")
        emergency_used = True

    return store.save_synced(settings=new_settings, emergency_used=emergency_used)


def set_enabled(store: PersistedStore, enabled: bool) -> SyncedData:
    """Master on/off switch."""
    return save_options(store, {"enabled": enabled})


def reset_options(store: PersistedStore) -> SyncedData:
    """Restore defaults and clear the lock-in flag."""
    logger.info("Settings reset to defaults")
    return store.save_synced(settings=Settings(), emergency_used=False)
