"""Tests for the options surface (validation, lock-in flag, reset)."""

import sys
import unittest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.options import (
    SettingsValidationError,
    reset_options,
    save_options,
    set_enabled,
    validate_settings,
)
from storage import PersistedStore, Settings


class TestValidation(unittest.TestCase):
    """Input is rejected before it reaches the store."""

    def test_limit_minimum(self):
        with self.assertRaises(SettingsValidationError) as ctx:
            validate_settings({"timeLimitMinutes": 0})
        self.assertEqual(str(ctx.exception), "Time limit must be at least 1 minute.")
        validate_settings({"timeLimitMinutes": 1})

    def test_duration_minimum(self):
        with self.assertRaises(SettingsValidationError) as ctx:
            validate_settings({"extremeDurationMinutes": 4})
        self.assertEqual(str(ctx.exception), "Extreme mode duration must be at least 5 minutes.")
        validate_settings({"extremeDurationMinutes": 5})

    def test_type_errors(self):
        for updates in [
            {"timeLimitMinutes": "10"},
            {"timeLimitMinutes": True},
            {"enabled": "off"},
            {"showDebugCountdown": 1},
        ]:
            with self.subTest(updates=updates):
                with self.assertRaises(SettingsValidationError):
                    validate_settings(updates)

    def test_unknown_key(self):
        with self.assertRaises(SettingsValidationError):
            validate_settings({"blockUntil": 5})

    def test_rejected_update_not_saved(self):
        store = PersistedStore.in_memory()
        with self.assertRaises(SettingsValidationError):
            save_options(store, {"timeLimitMinutes": 10, "extremeDurationMinutes": 1})
        self.assertEqual(store.load_synced().settings.time_limit_minutes, 5)


class TestSaveOptions(unittest.TestCase):

    def setUp(self):
        self.store = PersistedStore.in_memory()

    def test_partial_update_merges(self):
        save_options(self.store, {"timeLimitMinutes": 10})
        save_options(self.store, {"showDebugCountdown": True})
        settings = self.store.load_synced().settings
        self.assertEqual(settings.time_limit_minutes, 10)
        self.assertTrue(settings.show_debug_countdown)

    def test_turning_extreme_off_sets_flag(self):
        save_options(self.store, {"extremeModeEnabled": True})
        self.assertFalse(self.store.load_synced().emergency_used)
        synced = save_options(self.store, {"extremeModeEnabled": False})
        self.assertTrue(synced.emergency_used)

    def test_flag_not_set_when_extreme_was_off(self):
        synced = save_options(self.store, {"extremeModeEnabled": False})
        self.assertFalse(synced.emergency_used)

    def test_flag_is_sticky(self):
        self.store.save_synced(emergency_used=True)
        synced = save_options(self.store, {"timeLimitMinutes": 3})
        self.assertTrue(synced.emergency_used)

    def test_set_enabled(self):
        self.assertFalse(set_enabled(self.store, False).settings.enabled)
        self.assertTrue(set_enabled(self.store, True).settings.enabled)

    def test_reset_clears_everything(self):
        self.store.save_synced(settings=Settings(extreme_mode_enabled=True, time_limit_minutes=2),
                               emergency_used=True)
        synced = reset_options(self.store)
        self.assertEqual(synced.settings, Settings())
        self.assertFalse(synced.emergency_used)


if __name__ == "__main__":
    unittest.main()
