"""Configuration settings for ScrollGuard."""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv


def is_bundled() -> bool:
    """
    Check if the application is running from a PyInstaller bundle.

    Returns:
        True if running from a bundled executable, False otherwise.
    """
    return getattr(sys, 'frozen', False) and hasattr(sys, '_MEIPASS')


def get_user_data_dir() -> Path:
    """
    Get the directory for user-writable data (settings and session state).

    SCROLLGUARD_DATA_DIR always wins. Otherwise development runs keep data
    next to this file and bundled builds use the platform's per-user
    application data folder so state survives updates.

    Returns:
        Path to the user data directory.
    """
    override = os.getenv("SCROLLGUARD_DATA_DIR", "")
    if override:
        return Path(override).expanduser()

    if not is_bundled():
        return Path(__file__).parent / "data"

    if sys.platform == 'darwin':
        # macOS: ~/Library/Application Support/ScrollGuard
        return Path.home() / "Library" / "Application Support" / "ScrollGuard"
    if sys.platform == 'win32':
        appdata = os.environ.get('APPDATA')
        if appdata:
            return Path(appdata) / "ScrollGuard"
        return Path.home() / "AppData" / "Roaming" / "ScrollGuard"
    # Linux: ~/.local/share/ScrollGuard
    return Path.home() / ".local" / "share" / "ScrollGuard"


def _get_int_env(name: str, default: int) -> int:
    """Read an integer environment variable, falling back on bad values."""
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        import logging
        logging.getLogger(__name__).warning(
            f"{name}={raw!r} is not an integer, using {default}"
        )
        return default


# Load environment variables from .env file (only in development)
if not is_bundled():
    _env_path = Path(__file__).parent / ".env"
    load_dotenv(_env_path)

# User data directory (settings + volatile session state)
USER_DATA_DIR = get_user_data_dir()

# Synchronized partition (user-editable settings + lock-in flag)
SETTINGS_FILE = USER_DATA_DIR / "settings.json"
# Local partition (session timing and block window)
STATE_FILE = USER_DATA_DIR / "state.json"

# Default settings; any missing field falls back to these
DEFAULT_SETTINGS = {
    "enabled": True,
    "timeLimitMinutes": 5,  # limit per continuous session cycle
    "extremeModeEnabled": False,
    "extremeDurationMinutes": 60,  # block duration when extreme mode fires
    "showDebugCountdown": False,  # in-page countdown overlay
}

# Lower bounds enforced at the configuration boundary
MIN_TIME_LIMIT_MINUTES = 1
MIN_EXTREME_DURATION_MINUTES = 5

# Storage keys (kept compatible with the browser extension's storage layout)
KEY_SETTINGS = "settings"
KEY_EMERGENCY_USED = "extremeModeEmergencyUsed"
KEY_BLOCK_UNTIL = "blockUntil"
KEY_SESSION_START = "currentSessionStart"
KEY_ACCUMULATED_MS = "accumulatedSessionMs"
KEY_LAST_ACTIVE = "lastActiveAt"

# Periodic limit check; decisions are timestamp-based so cadence only
# affects how late a breach is noticed
TICK_INTERVAL_SECONDS = _get_int_env("TICK_INTERVAL_SECONDS", 15)

# How often the tick thread looks for settings edited by another process
SETTINGS_POLL_SECONDS = 2

# Browser bridge (local HTTP server the extension talks to)
BRIDGE_HOST = "127.0.0.1"
BRIDGE_PORT = _get_int_env("BRIDGE_PORT", 52600)
BRIDGE_BACKUP_PORTS = [52601, 52602, 52603]

# Seconds a status query waits for the controller thread to answer
STATUS_TIMEOUT_SECONDS = 2.0

# Block surface the extension navigates offending tabs to
BLOCK_PAGE_URL = os.getenv("BLOCK_PAGE_URL", "chrome-extension://scrollguard/block.html")

# Notification texts
NOTIFY_BLOCKED_TITLE = "Doomscrolling blocked"
NOTIFY_BLOCKED_MESSAGE = (
    "Extreme mode: all social media sites are blocked for {minutes} minutes."
)
NOTIFY_LIMIT_TITLE = "Doomscrolling stopped"
NOTIFY_LIMIT_MESSAGE = (
    "You spent more than {minutes} minutes on social media. Time to get back to work."
)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # Can override in .env: DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Supabase Configuration (settings sync across devices, optional)
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
SUPABASE_SETTINGS_TABLE = "scrollguard_settings"
