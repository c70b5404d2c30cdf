"""
Tests for the serialized controller runner.

These use real threads with short intervals; every wait is bounded.
"""

import sys
import tempfile
import time
import unittest
from pathlib import Path
from unittest.mock import MagicMock

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from bridge.tabs import BrowserTabs
from core import ControllerRunner, SessionController
from core.events import ActiveTabChanged, UrlChanged
from core.options import save_options
from storage import PersistedStore, Settings

MINUTE = 60 * 1000
INSTA = "https://www.instagram.com/"


def wait_until(predicate, timeout=3.0):
    """Poll a condition until true or timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now


class TestControllerRunner(unittest.TestCase):

    def setUp(self):
        self.store = PersistedStore.in_memory()
        self.tabs = BrowserTabs()
        self.notifier = MagicMock()
        self.clock = FakeClock()
        self.controller = SessionController(self.store, self.tabs, self.notifier, clock=self.clock)
        self.controller.load()
        self.runner = None

    def tearDown(self):
        if self.runner:
            self.runner.stop()

    def start_runner(self, tick_interval=60.0, poll_interval=0.02):
        self.runner = ControllerRunner(self.controller, tick_interval, poll_interval)
        self.runner.start()
        return self.runner

    def test_events_applied_before_later_status_query(self):
        """Queue order: a status query sees every earlier event."""
        runner = self.start_runner()
        self.tabs.update_tab(1, INSTA)
        self.tabs.set_active(1)
        runner.submit(ActiveTabChanged(1))

        status = runner.query_status()
        self.assertIsNotNone(status)
        self.assertTrue(status.has_active_session)

        self.tabs.update_tab(1, "https://example.com/")
        runner.submit(UrlChanged(1, "https://example.com/"))
        self.assertFalse(runner.query_status().has_active_session)

    def test_settings_write_reaches_controller(self):
        runner = self.start_runner()
        save_options(self.store, {"timeLimitMinutes": 12})
        status = runner.query_status()
        self.assertEqual(status.settings.time_limit_minutes, 12)

    def test_periodic_tick_enforces_limit(self):
        self.tabs.update_tab(1, INSTA)
        self.tabs.set_active(1)
        self.controller.handle(ActiveTabChanged(1))
        self.clock.now += 6 * MINUTE

        self.start_runner(tick_interval=0.05, poll_interval=0.01)
        self.assertTrue(wait_until(lambda: self.notifier.notify.called))
        commands = self.tabs.drain_commands()
        self.assertEqual([c["tabId"] for c in commands if c["type"] == "redirect"], [1])

    def test_external_settings_edit_picked_up(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            settings_file = Path(tmpdir) / "settings.json"
            state_file = Path(tmpdir) / "state.json"
            self.store = PersistedStore.from_files(settings_file, state_file)
            self.controller = SessionController(self.store, self.tabs, self.notifier, clock=self.clock)
            self.controller.load()
            runner = self.start_runner()

            # Another process (the options CLI) writes the file
            editor = PersistedStore.from_files(settings_file, state_file)
            editor.save_synced(settings=Settings(enabled=False))

            self.assertTrue(wait_until(
                lambda: runner.query_status().settings.enabled is False
            ))
            runner.stop()
            self.runner = None

    def test_stop_is_clean(self):
        runner = self.start_runner()
        self.assertTrue(runner.is_running)
        runner.stop()
        self.assertFalse(runner.is_running)
        self.runner = None

    def test_query_times_out_when_not_running(self):
        runner = ControllerRunner(self.controller)
        self.assertIsNone(runner.query_status(timeout=0.05))


if __name__ == "__main__":
    unittest.main()
