"""
Tests for the Supabase settings mirror.

The Supabase client is replaced with a MagicMock; no network access.
"""

import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from storage import Settings
from sync import SettingsSync


def _client_returning(row):
    client = MagicMock()
    query = client.table.return_value.select.return_value.maybe_single.return_value
    query.execute.return_value = MagicMock(data=row)
    return client


class TestSettingsSync(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.cache_file = Path(self.tmpdir.name) / "settings_cache.json"

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_no_credentials_disables_sync(self):
        with patch.object(config, "SUPABASE_URL", ""), patch.object(config, "SUPABASE_ANON_KEY", ""):
            sync = SettingsSync(cache_file=self.cache_file)
        self.assertIsNone(sync._client)
        self.assertIsNone(sync.pull())
        self.assertFalse(sync.push(Settings(), False))

    def test_pull_row(self):
        client = _client_returning({
            "settings": {"timeLimitMinutes": 15, "extremeModeEnabled": True},
            "emergency_used": True,
        })
        sync = SettingsSync(cache_file=self.cache_file, client=client)
        synced = sync.pull()
        client.table.assert_called_with(config.SUPABASE_SETTINGS_TABLE)
        self.assertEqual(synced.settings.time_limit_minutes, 15)
        self.assertTrue(synced.settings.extreme_mode_enabled)
        self.assertTrue(synced.emergency_used)
        # Pulled value is cached for offline use
        self.assertTrue(json.loads(self.cache_file.read_text())["emergency_used"])

    def test_pull_falls_back_to_cache(self):
        self.cache_file.write_text(json.dumps({
            "settings": {"timeLimitMinutes": 8},
            "emergency_used": False,
        }))
        client = MagicMock()
        client.table.side_effect = ConnectionError("offline")
        synced = SettingsSync(cache_file=self.cache_file, client=client).pull()
        self.assertEqual(synced.settings.time_limit_minutes, 8)

    def test_pull_empty_row_uses_cache(self):
        client = _client_returning(None)
        self.assertIsNone(SettingsSync(cache_file=self.cache_file, client=client).pull())

    def test_push_upserts(self):
        client = MagicMock()
        sync = SettingsSync(cache_file=self.cache_file, client=client)
        self.assertTrue(sync.push(Settings(time_limit_minutes=4), True))
        row = client.table.return_value.upsert.call_args[0][0]
        self.assertEqual(row["settings"]["timeLimitMinutes"], 4)
        self.assertTrue(row["emergency_used"])
        self.assertIn("updated_at", row)

    def test_push_failure_still_caches(self):
        client = MagicMock()
        client.table.return_value.upsert.side_effect = ConnectionError("offline")
        sync = SettingsSync(cache_file=self.cache_file, client=client)
        self.assertFalse(sync.push(Settings(enabled=False), False))
        self.assertFalse(json.loads(self.cache_file.read_text())["settings"]["enabled"])


if __name__ == "__main__":
    unittest.main()
