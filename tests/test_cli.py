"""
Tests for the command line entry point and the service lock.

Settings and state files are redirected to a temporary directory.
"""

import io
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
import main
from instance_lock import ServiceLock
from storage import JsonFileBackend, PersistedStore, SessionState


class TestServiceLock(unittest.TestCase):

    def test_second_lock_refused(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            lock_file = Path(tmpdir) / "service.lock"
            first = ServiceLock(lock_file)
            self.assertTrue(first.acquire())
            self.assertEqual(first.owner_pid(), os.getpid())

            second = ServiceLock(lock_file)
            self.assertFalse(second.acquire())

            first.release()
            self.assertTrue(second.acquire())
            second.release()


class TestCommandLine(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        base = Path(self.tmpdir.name)
        self.patches = [
            patch.object(config, "SETTINGS_FILE", base / "settings.json"),
            patch.object(config, "STATE_FILE", base / "state.json"),
            patch.object(config, "SUPABASE_URL", ""),
            patch.object(config, "SUPABASE_ANON_KEY", ""),
            patch.object(main, "_fetch_live_status", return_value=None),
        ]
        for p in self.patches:
            p.start()

    def tearDown(self):
        for p in reversed(self.patches):
            p.stop()
        self.tmpdir.cleanup()

    def run_main(self, *argv):
        out = io.StringIO()
        with redirect_stdout(out):
            main.main(list(argv))
        return out.getvalue()

    def stored_settings(self):
        return PersistedStore.from_files().load_synced()

    def test_set_options(self):
        output = self.run_main("set", "--limit", "10", "--extreme", "on", "--duration", "30")
        self.assertIn("Settings saved.", output)
        settings = self.stored_settings().settings
        self.assertEqual(settings.time_limit_minutes, 10)
        self.assertTrue(settings.extreme_mode_enabled)
        self.assertEqual(settings.extreme_duration_minutes, 30)

    def test_invalid_limit_rejected(self):
        out = io.StringIO()
        with redirect_stdout(out), self.assertRaises(SystemExit) as ctx:
            main.main(["set", "--limit", "0"])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("Time limit must be at least 1 minute.", out.getvalue())
        self.assertEqual(self.stored_settings().settings.time_limit_minutes, 5)

    def test_extreme_off_reports_lock_in(self):
        self.run_main("set", "--extreme", "on")
        output = self.run_main("set", "--extreme", "off")
        self.assertIn("locked in", output)
        self.assertTrue(self.stored_settings().emergency_used)

    def test_enable_disable_reset(self):
        self.run_main("disable")
        self.assertFalse(self.stored_settings().settings.enabled)
        self.run_main("enable")
        self.assertTrue(self.stored_settings().settings.enabled)
        self.run_main("set", "--limit", "2")
        self.run_main("reset")
        self.assertEqual(self.stored_settings().settings.time_limit_minutes, 5)

    def test_offline_status(self):
        self.run_main("set", "--limit", "10")
        output = self.run_main("status")
        self.assertIn("Limit: 10 min", output)
        self.assertIn("Remaining this cycle: 10m 0s", output)
        self.assertIn("service not running", output)

    def test_debug_countdown_shown_when_enabled(self):
        output = self.run_main("status")
        self.assertNotIn("Countdown:", output)
        self.run_main("set", "--limit", "2", "--debug-countdown", "on")
        output = self.run_main("status")
        self.assertIn("Countdown: 2:00", output)

    def test_offline_status_does_not_write(self):
        JsonFileBackend(config.STATE_FILE).write(SessionState(block_until=1).to_dict())
        before = config.STATE_FILE.read_text()
        self.run_main("status")
        self.assertEqual(config.STATE_FILE.read_text(), before)

    def test_live_status_preferred(self):
        live = {
            "settings": {"enabled": True, "timeLimitMinutes": 5, "extremeModeEnabled": True},
            "isBlocked": False,
            "blockUntil": 0,
            "hasActiveSession": True,
            "remainingMs": 45_000,
        }
        with patch.object(main, "_fetch_live_status", return_value=live):
            output = self.run_main("status")
        self.assertIn("Extreme mode ON", output)
        self.assertIn("Current session remaining: 45s", output)
        self.assertNotIn("service not running", output)


if __name__ == "__main__":
    unittest.main()
