"""
Tests for the pure enforcement decisions and the lock-in ratchet.
"""

import sys
import unittest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core import policy
from core.lock_in import LockInGuard
from core.policy import ActivityDecision, BreachMode
from storage import PersistedStore, Settings, SyncedData

MINUTE = 60 * 1000
NOW = 1_700_000_000_000


class TestEvaluateActivity(unittest.TestCase):
    """Priority order: disabled, blocked, unfocused/off-target, start."""

    def test_disabled_wins(self):
        decision = policy.evaluate_activity(Settings(enabled=False), NOW + MINUTE, NOW, True, True)
        self.assertEqual(decision, ActivityDecision.STOP)

    def test_blocked(self):
        decision = policy.evaluate_activity(Settings(), NOW + 1, NOW, True, True)
        self.assertEqual(decision, ActivityDecision.BLOCKED)

    def test_expired_block_is_not_blocked(self):
        decision = policy.evaluate_activity(Settings(), NOW, NOW, True, True)
        self.assertEqual(decision, ActivityDecision.START)

    def test_unfocused_or_off_target(self):
        self.assertEqual(policy.evaluate_activity(Settings(), 0, NOW, False, True), ActivityDecision.STOP)
        self.assertEqual(policy.evaluate_activity(Settings(), 0, NOW, True, False), ActivityDecision.STOP)

    def test_start(self):
        self.assertEqual(policy.evaluate_activity(Settings(), 0, NOW, True, True), ActivityDecision.START)


class TestBreach(unittest.TestCase):

    def test_threshold_inclusive(self):
        settings = Settings(time_limit_minutes=5)
        self.assertFalse(policy.is_breached(settings, 0, 5 * MINUTE - 1, NOW, True))
        self.assertTrue(policy.is_breached(settings, 0, 5 * MINUTE, NOW, True))

    def test_not_on_target(self):
        self.assertFalse(policy.is_breached(Settings(), 0, 10 * MINUTE, NOW, False))

    def test_disabled_or_blocked(self):
        self.assertFalse(policy.is_breached(Settings(enabled=False), 0, 10 * MINUTE, NOW, True))
        self.assertFalse(policy.is_breached(Settings(), NOW + 1, 10 * MINUTE, NOW, True))

    def test_soft_plan(self):
        plan = policy.plan_breach(Settings(time_limit_minutes=7), NOW)
        self.assertEqual(plan.mode, BreachMode.SOFT)
        self.assertEqual(plan.block_until, 0)
        self.assertEqual(plan.title, "Doomscrolling stopped")
        self.assertIn("7 minutes", plan.message)

    def test_hard_plan(self):
        plan = policy.plan_breach(Settings(extreme_mode_enabled=True, extreme_duration_minutes=30), NOW)
        self.assertEqual(plan.mode, BreachMode.HARD)
        self.assertEqual(plan.block_until, NOW + 30 * MINUTE)
        self.assertEqual(plan.title, "Doomscrolling blocked")
        self.assertIn("30 minutes", plan.message)


class TestRemaining(unittest.TestCase):

    def test_remaining(self):
        self.assertEqual(policy.remaining_ms(Settings(), 0, MINUTE, NOW), 4 * MINUTE)

    def test_never_negative(self):
        self.assertEqual(policy.remaining_ms(Settings(), 0, 9 * MINUTE, NOW), 0)

    def test_absent_while_disabled_or_blocked(self):
        self.assertIsNone(policy.remaining_ms(Settings(enabled=False), 0, 0, NOW))
        self.assertIsNone(policy.remaining_ms(Settings(), NOW + MINUTE, 0, NOW))


class TestLockInGuard(unittest.TestCase):
    """Extreme mode cannot be switched off once the flag is set."""

    def test_enforce(self):
        settings, corrected = LockInGuard.enforce(Settings(extreme_mode_enabled=False), True)
        self.assertTrue(settings.extreme_mode_enabled)
        self.assertTrue(corrected)

    def test_no_flag_passes_through(self):
        settings, corrected = LockInGuard.enforce(Settings(extreme_mode_enabled=False), False)
        self.assertFalse(settings.extreme_mode_enabled)
        self.assertFalse(corrected)

    def test_already_on(self):
        _, corrected = LockInGuard.enforce(Settings(extreme_mode_enabled=True), True)
        self.assertFalse(corrected)

    def test_apply_persists_correction(self):
        store = PersistedStore.in_memory()
        store.save_synced(settings=Settings(extreme_mode_enabled=False, time_limit_minutes=3),
                          emergency_used=True)
        settings = LockInGuard().apply(store.load_synced(), store)
        self.assertTrue(settings.extreme_mode_enabled)
        stored = store.load_synced()
        self.assertTrue(stored.settings.extreme_mode_enabled)
        self.assertEqual(stored.settings.time_limit_minutes, 3)
        self.assertTrue(stored.emergency_used)

    def test_apply_without_correction_does_not_write(self):
        store = PersistedStore.in_memory()
        writes = []
        store.add_settings_listener(writes.append)
        LockInGuard().apply(SyncedData(Settings(), False), store)
        self.assertEqual(writes, [])


if __name__ == "__main__":
    unittest.main()
