"""
Tab directory and command outbox shared with the browser extension.

The extension reports tabs; the controller asks for redirects and
notifications, which are queued here until the extension polls them.
"""

import logging
import threading
from typing import Dict, List, Optional

from core.events import Tab

logger = logging.getLogger(__name__)


class BrowserTabs:
    """
    Thread-safe view of the browser's tabs.

    Implements both the TabDirectory and Notifier interfaces the
    controller expects.
    """

    def __init__(self) -> None:
        self._tabs: Dict[int, Optional[str]] = {}
        self._active_tab_id: Optional[int] = None
        self._commands: List[Dict] = []
        self._lock = threading.Lock()

    # ---- updates from the extension ----

    def update_tab(self, tab_id: int, url: Optional[str]) -> None:
        with self._lock:
            self._tabs[tab_id] = url

    def remove_tab(self, tab_id: int) -> bool:
        """
        Forget a closed tab.

        Returns:
            True if the removed tab was the active one.
        """
        with self._lock:
            self._tabs.pop(tab_id, None)
            was_active = tab_id == self._active_tab_id
            if was_active:
                self._active_tab_id = None
            return was_active

    def set_active(self, tab_id: int) -> None:
        with self._lock:
            self._active_tab_id = tab_id
            self._tabs.setdefault(tab_id, None)

    def replace_all(self, tabs: Dict[int, Optional[str]]) -> None:
        """Replace the directory with a full snapshot."""
        with self._lock:
            self._tabs = dict(tabs)
            if self._active_tab_id not in self._tabs:
                self._active_tab_id = None

    # ---- TabDirectory ----

    def get_tab(self, tab_id: int) -> Optional[Tab]:
        with self._lock:
            if tab_id not in self._tabs:
                return None
            return Tab(tab_id, self._tabs[tab_id])

    def list_tabs(self) -> List[Tab]:
        with self._lock:
            return [Tab(tab_id, url) for tab_id, url in self._tabs.items()]

    def redirect(self, tab_id: int, url: str) -> None:
        """Queue a navigation; the tab is assumed to land on `url`."""
        with self._lock:
            if tab_id not in self._tabs:
                logger.debug(f"Redirect for unknown tab {tab_id} dropped")
                return
            self._tabs[tab_id] = url
            self._commands.append({"type": "redirect", "tabId": tab_id, "url": url})

    # ---- Notifier ----

    def notify(self, title: str, message: str) -> None:
        with self._lock:
            self._commands.append({"type": "notify", "title": title, "message": message})

    # ---- outbox ----

    def drain_commands(self) -> List[Dict]:
        """Hand over and clear all pending commands."""
        with self._lock:
            commands, self._commands = self._commands, []
            return commands
