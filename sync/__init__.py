"""
Sync package - Supabase mirror for the synchronized settings partition.

Provides SettingsSync for pulling and pushing settings across machines.
"""

from sync.supabase_client import SettingsSync

__all__ = ["SettingsSync"]
