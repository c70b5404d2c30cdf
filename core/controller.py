"""
SessionController - orchestrates session timing and enforcement.

Reacts to browser activity (tab activation, navigation, window focus, tab
close), periodic ticks and settings changes. Each event goes through the
single `handle()` entry point; the caller guarantees events are handled
one at a time (see core.runner.ControllerRunner).

Side effects go to two collaborators supplied by the caller:
    tabs.redirect(tab_id, url)       - navigate a tab to the block page
    notifier.notify(title, message)  - user notification on breach
Failures in either are logged and swallowed; the next event or tick
re-evaluates from stored state anyway.

Callbacks:
    on_phase_change(phase: SessionPhase)
"""

import logging
import time
from typing import Callable, Optional

import config
from core.events import (
    ActiveTabChanged,
    ActiveTabClosed,
    ActivityEvent,
    Notifier,
    PeriodicTick,
    SessionPhase,
    SettingsChanged,
    Status,
    Tab,
    TabDirectory,
    UrlChanged,
    WindowFocusChanged,
)
from core.lock_in import LockInGuard
from core import policy
from core.policy import ActivityDecision, BreachMode
from sites.targets import TargetMatcher
from storage.models import SessionState, Settings, SyncedData
from storage.store import PersistedStore
from tracking.session_clock import SessionClock

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SessionController:
    """
    Owns the session state and applies the enforcement policy.

    The phase (idle / running / blocked) is never stored; it is derived
    from the persisted flags whenever it is read.
    """

    def __init__(
        self,
        store: PersistedStore,
        tabs: TabDirectory,
        notifier: Notifier,
        matcher: Optional[TargetMatcher] = None,
        clock: Callable[[], int] = now_ms,
        block_page_url: str = config.BLOCK_PAGE_URL,
    ) -> None:
        self.store = store
        self.tabs = tabs
        self.notifier = notifier
        self.matcher = matcher or TargetMatcher()
        self.block_page_url = block_page_url
        self._clock = clock
        self.guard = LockInGuard()

        self.settings: Settings = Settings()
        self.emergency_used: bool = False
        self.state: SessionState = SessionState()
        self.session_clock = SessionClock(self.state, store)

        # Browser view, rebuilt from events
        self.active_tab_id: Optional[int] = None
        self.window_focused: bool = True

        self._last_phase: SessionPhase = SessionPhase.IDLE

        # ---- Callbacks ----
        self.on_phase_change: Optional[Callable[[SessionPhase], None]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Load settings (through the lock-in guard) and persisted state."""
        try:
            self.store.pull_remote()
        except Exception as e:
            logger.warning(f"Could not pull remote settings: {e}")

        synced = self.store.load_synced()
        self.emergency_used = synced.emergency_used
        self.settings = self.guard.apply(synced, self.store)

        loaded = self.store.load_state()
        # Mutate in place; the session clock holds the same object
        self.state.session_start = loaded.session_start
        self.state.accumulated_ms = loaded.accumulated_ms
        self.state.block_until = loaded.block_until
        self.state.last_active = loaded.last_active
        # Nothing is known about activity while the service was down
        self.session_clock.recover()
        self._last_phase = self.phase()
        logger.info(
            f"Loaded state: phase={self._last_phase.value}, "
            f"accumulated={self.state.accumulated_ms}ms, limit={self.settings.time_limit_minutes}min"
        )

    def handle(self, event: ActivityEvent, now: Optional[int] = None) -> None:
        """
        Apply one event.

        Safe to call repeatedly with the same event: starting an open
        session, stopping a closed one and redirecting an already
        redirected tab are all no-ops.
        """
        if now is None:
            now = self._clock()
        try:
            if isinstance(event, ActiveTabChanged):
                self.active_tab_id = event.tab_id
                self._update_session(now)
            elif isinstance(event, UrlChanged):
                # Any tab, active or not, is kept off targets while blocked
                self._enforce_block_on_tab(event.tab_id, event.url, now)
                if event.tab_id == self.active_tab_id:
                    self._update_session(now, url=event.url)
            elif isinstance(event, WindowFocusChanged):
                self.window_focused = event.focused
                if not event.focused:
                    self.session_clock.stop(now)
                self._update_session(now)
            elif isinstance(event, ActiveTabClosed):
                if event.tab_id == self.active_tab_id:
                    self.active_tab_id = None
                    self.session_clock.stop(now)
            elif isinstance(event, PeriodicTick):
                self._update_session(now)
                self.session_clock.heartbeat(now)
                self._check_session_limit(now)
            elif isinstance(event, SettingsChanged):
                self._apply_settings(SyncedData(event.settings, event.emergency_used), now)
            else:
                logger.warning(f"Ignoring unknown event: {event!r}")
        except Exception as e:
            logger.error(f"Error handling {type(event).__name__}: {e}", exc_info=True)

        self._check_phase_change(now)

    def phase(self, now: Optional[int] = None) -> SessionPhase:
        """Derive the current phase from the stored flags."""
        if now is None:
            now = self._clock()
        if policy.is_block_active(self.state.block_until, now):
            return SessionPhase.BLOCKED
        if self.session_clock.is_running:
            return SessionPhase.RUNNING
        return SessionPhase.IDLE

    def status(self, now: Optional[int] = None) -> Status:
        """
        Status snapshot for presentation layers.

        remaining_ms is None while disabled or blocked.
        """
        if now is None:
            now = self._clock()
        blocked = self._refresh_block(now)
        elapsed = self.session_clock.elapsed(now)
        return Status(
            settings=self.settings,
            is_blocked=blocked,
            block_until=self.state.block_until,
            has_active_session=self.session_clock.is_running,
            remaining_ms=policy.remaining_ms(self.settings, self.state.block_until, elapsed, now),
            phase=self.phase(now),
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _update_session(self, now: int, url: Optional[str] = None) -> None:
        """
        Recompute whether a session should be timing right now.

        Args:
            now: Event time.
            url: URL carried by the event for the active tab; wins over
                the tab directory, which may already hold a later one.
        """
        self._refresh_block(now)
        if url is not None:
            tab = Tab(self.active_tab_id, url)
        else:
            tab = self._get_active_tab()
            url = tab.url if tab else None

        decision = policy.evaluate_activity(
            self.settings,
            self.state.block_until,
            now,
            self.window_focused,
            self.matcher.is_target(url),
        )
        if decision == ActivityDecision.START:
            self.session_clock.start(now)
            return

        self.session_clock.stop(now)
        if decision == ActivityDecision.BLOCKED and tab is not None:
            self._enforce_block_on_tab(tab.tab_id, url, now)

    def _check_session_limit(self, now: int) -> None:
        """Breach check, recomputed from stored timestamps on every tick."""
        if not self.settings.enabled or self._refresh_block(now):
            return
        elapsed = self.session_clock.elapsed(now)
        if elapsed < self.settings.limit_ms:
            return

        # Over the limit, but only acted on while the user is on a target
        tab = self._get_active_tab()
        on_target = self.window_focused and tab is not None and self.matcher.is_target(tab.url)
        if policy.is_breached(self.settings, self.state.block_until, elapsed, now, on_target):
            self._handle_limit_reached(tab, now)

    def _handle_limit_reached(self, tab: Tab, now: int) -> None:
        """Reset the cycle and apply the soft or hard outcome."""
        plan = policy.plan_breach(self.settings, now)
        self.session_clock.reset()

        if plan.mode == BreachMode.HARD:
            self.state.block_until = plan.block_until
            self.store.save_state(self.state)
            logger.info(
                f"Limit reached: blocking targets for "
                f"{self.settings.extreme_duration_minutes} minutes"
            )
            self._enforce_block_on_all_tabs(now)
        else:
            logger.info(f"Limit reached: redirecting tab {tab.tab_id}")
            self._redirect(tab.tab_id)

        self._notify(plan.title, plan.message)

    def _apply_settings(self, synced: SyncedData, now: int) -> None:
        """Take in new settings through the lock-in guard."""
        self.emergency_used = synced.emergency_used
        self.settings = self.guard.apply(synced, self.store)
        logger.debug(f"Settings applied: {self.settings}")
        self._update_session(now)

    # ------------------------------------------------------------------
    # Blocking
    # ------------------------------------------------------------------

    def _refresh_block(self, now: int) -> bool:
        """
        Clear an expired block window.

        Returns:
            True if a block is still active.
        """
        if policy.is_block_expired(self.state.block_until, now):
            self.state.block_until = 0
            self.store.save_state(self.state)
            logger.info("Block window expired")
            return False
        return policy.is_block_active(self.state.block_until, now)

    def _enforce_block_on_tab(self, tab_id: int, url: Optional[str], now: int) -> bool:
        """Redirect one tab if a block is active and it shows a target."""
        if not self.settings.enabled:
            return False
        if not self._refresh_block(now):
            return False
        if not self.matcher.is_target(url):
            return False
        self._redirect(tab_id)
        return True

    def _enforce_block_on_all_tabs(self, now: int) -> None:
        if not self._refresh_block(now):
            return
        try:
            open_tabs = self.tabs.list_tabs()
        except Exception as e:
            logger.debug(f"Could not list tabs: {e}")
            return
        for tab in open_tabs:
            if tab.url and self.matcher.is_target(tab.url):
                self._redirect(tab.tab_id)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def _get_active_tab(self) -> Optional[Tab]:
        if self.active_tab_id is None:
            return None
        try:
            return self.tabs.get_tab(self.active_tab_id)
        except Exception as e:
            logger.debug(f"Active tab lookup failed: {e}")
            return None

    def _redirect(self, tab_id: int) -> None:
        # Tabs might already be gone; ignore errors
        try:
            self.tabs.redirect(tab_id, self.block_page_url)
        except Exception as e:
            logger.debug(f"Redirect of tab {tab_id} failed: {e}")

    def _notify(self, title: str, message: str) -> None:
        try:
            self.notifier.notify(title, message)
        except Exception as e:
            logger.debug(f"Notification failed: {e}")

    def _check_phase_change(self, now: int) -> None:
        phase = self.phase(now)
        if phase == self._last_phase:
            return
        logger.info(f"Phase: {self._last_phase.value} -> {phase.value}")
        self._last_phase = phase
        if self.on_phase_change:
            try:
                self.on_phase_change(phase)
            except Exception as e:
                logger.debug(f"on_phase_change callback error: {e}")
