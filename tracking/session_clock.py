"""Continuous-session timer with accumulation across pauses."""

import logging
from typing import Optional

from storage.models import SessionState
from storage.store import PersistedStore

logger = logging.getLogger(__name__)


class SessionClock:
    """
    Times presence on target sites.

    A session is one continuous interval of focused presence. Stopping a
    session folds its length into the accumulated total for the current
    cycle; only a limit breach resets the cycle.

    The clock shares the SessionState object owned by the controller and
    persists it after every mutation.
    """

    def __init__(self, state: SessionState, store: PersistedStore):
        self.state = state
        self.store = store

    @property
    def is_running(self) -> bool:
        """True while a session is open."""
        return self.state.session_start is not None

    @property
    def accumulated_ms(self) -> int:
        return self.state.accumulated_ms

    @property
    def session_start(self) -> Optional[int]:
        return self.state.session_start

    def start(self, now: int) -> bool:
        """
        Open a session at `now`.

        Returns:
            True if a session was opened, False if one was already open.
        """
        if self.is_running:
            return False
        self.state.session_start = now
        self.state.last_active = now
        self.store.save_state(self.state)
        logger.info("Session started")
        return True

    def stop(self, now: int) -> bool:
        """
        Close the open session and accumulate its length.

        A clock that went backwards contributes zero rather than shrinking
        the total.

        Returns:
            True if a session was closed, False if none was open.
        """
        if not self.is_running:
            return False
        elapsed = max(0, now - self.state.session_start)
        self.state.accumulated_ms += elapsed
        self.state.session_start = None
        self.state.last_active = None
        self.store.save_state(self.state)
        logger.info(
            f"Session paused after {elapsed / 1000:.1f}s "
            f"(cycle total {self.state.accumulated_ms / 1000:.1f}s)"
        )
        return True

    def heartbeat(self, now: int) -> None:
        """Record that the open session is still live at `now`."""
        if not self.is_running:
            return
        self.state.last_active = max(now, self.state.session_start)
        self.store.save_state(self.state)

    def recover(self) -> bool:
        """
        Close a session left open by a previous run.

        The session is closed at its last heartbeat, so time the service
        was down is never counted as time on target.

        Returns:
            True if a stale session was closed.
        """
        if not self.is_running:
            return False
        last_seen = self.state.last_active
        if last_seen is None or last_seen < self.state.session_start:
            last_seen = self.state.session_start
        logger.info("Closing session left open by a previous run")
        return self.stop(last_seen)

    def elapsed(self, now: int) -> int:
        """Effective time on target in this cycle, in milliseconds."""
        if self.state.session_start is None:
            return self.state.accumulated_ms
        return self.state.accumulated_ms + max(0, now - self.state.session_start)

    def reset(self) -> None:
        """Clear the open session and the cycle total."""
        self.state.session_start = None
        self.state.last_active = None
        self.state.accumulated_ms = 0
        self.store.save_state(self.state)
        logger.info("Session timing reset")
