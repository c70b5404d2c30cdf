"""
Message types exchanged with the session controller.

Activity events come from the browser (via the bridge) or the tick
thread; StatusRequest/Status form the request/response pair used by
presentation layers.
"""

import queue
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Union

from storage.models import Settings


class SessionPhase(str, Enum):
    """Phase derived from the persisted flags at read time."""

    IDLE = "idle"
    RUNNING = "running"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class ActiveTabChanged:
    tab_id: int


@dataclass(frozen=True)
class UrlChanged:
    tab_id: int
    url: str


@dataclass(frozen=True)
class WindowFocusChanged:
    focused: bool


@dataclass(frozen=True)
class ActiveTabClosed:
    tab_id: int


@dataclass(frozen=True)
class PeriodicTick:
    pass


@dataclass(frozen=True)
class SettingsChanged:
    settings: Settings
    emergency_used: bool


ActivityEvent = Union[
    ActiveTabChanged,
    UrlChanged,
    WindowFocusChanged,
    ActiveTabClosed,
    PeriodicTick,
    SettingsChanged,
]


@dataclass(frozen=True)
class Status:
    """Snapshot answered to status queries."""

    settings: Settings
    is_blocked: bool
    block_until: int
    has_active_session: bool
    remaining_ms: Optional[int]
    phase: SessionPhase

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape consumed by the popup and the in-page countdown."""
        return {
            "settings": self.settings.to_dict(),
            "isBlocked": self.is_blocked,
            "blockUntil": self.block_until,
            "hasActiveSession": self.has_active_session,
            "remainingMs": self.remaining_ms,
            "phase": self.phase.value,
        }


@dataclass
class StatusRequest:
    """Status query; the controller thread puts a Status on `reply`."""

    reply: "queue.Queue[Status]" = field(default_factory=lambda: queue.Queue(maxsize=1))


@dataclass(frozen=True)
class Tab:
    """A browser tab as known to the tab directory."""

    tab_id: int
    url: Optional[str] = None


class TabDirectory(Protocol):
    """Redirect mechanism and tab lookup provided by the browser side."""

    def get_tab(self, tab_id: int) -> Optional[Tab]:
        ...

    def list_tabs(self) -> List[Tab]:
        ...

    def redirect(self, tab_id: int, url: str) -> None:
        ...


class Notifier(Protocol):
    """Fire-and-forget user notifications."""

    def notify(self, title: str, message: str) -> None:
        ...
