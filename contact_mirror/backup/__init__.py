"""
Backup functionality for account snapshots.

Creates local snapshots of every selected account before a sync writes to
it, so the previous contents can be inspected or recovered.
"""

from contact_mirror.backup.manager import BackupManager

__all__ = ["BackupManager"]
