"""
Persisted data model for ScrollGuard.

Settings live in the synchronized partition and use the extension's
camelCase keys on disk; SessionState lives in the local partition.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

import config

logger = logging.getLogger(__name__)

# Attribute name -> persisted key
_SETTINGS_KEYS = {
    "enabled": "enabled",
    "time_limit_minutes": "timeLimitMinutes",
    "extreme_mode_enabled": "extremeModeEnabled",
    "extreme_duration_minutes": "extremeDurationMinutes",
    "show_debug_countdown": "showDebugCountdown",
}

_MINIMUMS = {
    "timeLimitMinutes": config.MIN_TIME_LIMIT_MINUTES,
    "extremeDurationMinutes": config.MIN_EXTREME_DURATION_MINUTES,
}


def _is_int(value: Any) -> bool:
    # bool is an int subclass; never accept True as "1 minute"
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class Settings:
    """User-editable settings."""

    enabled: bool = config.DEFAULT_SETTINGS["enabled"]
    time_limit_minutes: int = config.DEFAULT_SETTINGS["timeLimitMinutes"]
    extreme_mode_enabled: bool = config.DEFAULT_SETTINGS["extremeModeEnabled"]
    extreme_duration_minutes: int = config.DEFAULT_SETTINGS["extremeDurationMinutes"]
    show_debug_countdown: bool = config.DEFAULT_SETTINGS["showDebugCountdown"]

    @property
    def limit_ms(self) -> int:
        """Session limit in milliseconds."""
        return self.time_limit_minutes * 60 * 1000

    @property
    def extreme_duration_ms(self) -> int:
        """Hard-mode block length in milliseconds."""
        return self.extreme_duration_minutes * 60 * 1000

    def with_changes(self, **changes: Any) -> "Settings":
        """Return a copy with some attributes replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the persisted camelCase keys."""
        return {key: getattr(self, attr) for attr, key in _SETTINGS_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        """
        Shallow-merge persisted data over the defaults.

        Missing, wrongly typed or out-of-range values fall back to the
        default for that field; unknown keys are ignored.
        """
        merged = dict(config.DEFAULT_SETTINGS)
        if isinstance(data, dict):
            for key, value in data.items():
                if key not in merged:
                    continue
                default = config.DEFAULT_SETTINGS[key]
                if isinstance(default, bool):
                    valid = isinstance(value, bool)
                else:
                    valid = _is_int(value) and value >= _MINIMUMS.get(key, 0)
                if valid:
                    merged[key] = value
                else:
                    logger.warning(f"Ignoring invalid stored setting {key}={value!r}")
        elif data is not None:
            logger.warning(f"Stored settings are not an object: {type(data).__name__}")

        return cls(**{attr: merged[key] for attr, key in _SETTINGS_KEYS.items()})


@dataclass
class SessionState:
    """
    Volatile timing state, persisted to the local partition.

    Timestamps are milliseconds since the epoch; block_until == 0 means
    no block. last_active is the latest time an open session was known
    to be live, used to close it after a restart.
    """

    session_start: Optional[int] = None
    accumulated_ms: int = 0
    block_until: int = 0
    last_active: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the persisted keys."""
        return {
            config.KEY_BLOCK_UNTIL: self.block_until,
            config.KEY_SESSION_START: self.session_start,
            config.KEY_ACCUMULATED_MS: self.accumulated_ms,
            config.KEY_LAST_ACTIVE: self.last_active,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SessionState":
        """Load state, treating malformed values as absent."""
        if not isinstance(data, dict):
            return cls()

        def _number(key: str) -> Optional[int]:
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            if value < 0:
                logger.warning(f"Ignoring negative stored value {key}={value!r}")
                return None
            return int(value)

        return cls(
            session_start=_number(config.KEY_SESSION_START),
            accumulated_ms=_number(config.KEY_ACCUMULATED_MS) or 0,
            block_until=_number(config.KEY_BLOCK_UNTIL) or 0,
            last_active=_number(config.KEY_LAST_ACTIVE),
        )


@dataclass
class SyncedData:
    """Contents of the synchronized partition."""

    settings: Settings = field(default_factory=Settings)
    emergency_used: bool = False
