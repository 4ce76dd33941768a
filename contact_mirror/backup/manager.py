"""
Backup manager for account snapshots.

Provides functionality to:
- Create JSON backups of every selected account's records before a sync
  writes to them, with timestamp naming
- List available backups sorted by timestamp
- Load backup data and rebuild the records
- Apply retention policy to limit backup count
"""

from __future__ import annotations

import contextlib
import json
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from contact_mirror.sync.contact import ContactRecord

logger = logging.getLogger(__name__)


class BackupManager:
    """
    Manager for creating and managing account snapshots.

    Attributes:
        backup_dir: Directory path where backups are stored
        retention_count: Maximum number of backups to retain (0 = unlimited)

    Usage:
        bm = BackupManager(Path("~/.contact-mirror/backups"), retention_count=10)

        # Snapshot records grouped by account id
        backup_file = bm.create_backup({"work": work_records, "home": home_records})

        backups = bm.list_backups()
        snapshot = bm.load_records(backups[0])
    """

    BACKUP_VERSION = "1.0"
    BACKUP_PREFIX = "backup_"
    BACKUP_SUFFIX = ".json"

    def __init__(self, backup_dir: Path, retention_count: int = 10):
        self.backup_dir = Path(backup_dir).expanduser()
        self.retention_count = retention_count

    def create_backup(
        self,
        snapshot: Mapping[str, Sequence[ContactRecord]],
        account_names: Mapping[str, str] | None = None,
    ) -> Path | None:
        """
        Write a timestamped backup of the given account snapshot.

        Creates a file named backup_YYYYMMDD_HHMMSS_ffffff.json.

        Args:
            snapshot: Records keyed by account id
            account_names: Optional display names keyed by account id

        Returns:
            Path to created backup file, or None if the backup failed

        Backup format:
            {
                "version": "1.0",
                "timestamp": "2026-01-20T10:30:00.000000",
                "accounts": {
                    "work": {"display_name": "Work", "contacts": [...]},
                    "home": {"display_name": "Home", "contacts": [...]}
                }
            }
        """
        timestamp = datetime.now()
        filename = (
            f"{self.BACKUP_PREFIX}{timestamp.strftime('%Y%m%d_%H%M%S_%f')}"
            f"{self.BACKUP_SUFFIX}"
        )
        backup_path = self.backup_dir / filename
        names = account_names or {}

        backup_data = {
            "version": self.BACKUP_VERSION,
            "timestamp": timestamp.isoformat(),
            "accounts": {
                account_id: {
                    "display_name": names.get(account_id, ""),
                    "contacts": [record.to_dict() for record in records],
                }
                for account_id, records in snapshot.items()
            },
        }

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            with open(backup_path, "w", encoding="utf-8") as f:
                json.dump(backup_data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            # Backup failure shouldn't block sync
            logger.warning(f"Failed to write backup {backup_path}: {e}")
            return None

        logger.info(f"Backup created: {backup_path}")
        self.apply_retention()
        return backup_path

    def list_backups(self) -> list[Path]:
        """List backup files, newest first."""
        if not self.backup_dir.exists():
            return []
        backup_files = list(
            self.backup_dir.glob(f"{self.BACKUP_PREFIX}*{self.BACKUP_SUFFIX}")
        )
        # File names embed the timestamp, so name order is creation order
        backup_files.sort(key=lambda p: p.name, reverse=True)
        return backup_files

    def load_backup(self, backup_file: Path) -> dict[str, Any] | None:
        """
        Load and validate a backup file.

        Returns:
            The parsed backup dictionary, or None if the file cannot be read
            or is not a backup
        """
        try:
            with open(backup_file, encoding="utf-8") as f:
                backup_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Cannot read backup {backup_file}: {e}")
            return None

        if not isinstance(backup_data, dict):
            return None
        if "version" not in backup_data or not isinstance(
            backup_data.get("accounts"), dict
        ):
            return None
        return backup_data

    def load_records(self, backup_file: Path) -> dict[str, list[ContactRecord]] | None:
        """Load a backup and rebuild its records, keyed by account id."""
        data = self.load_backup(backup_file)
        if data is None:
            return None
        return {
            account_id: [
                ContactRecord.from_dict(item, account_id=account_id)
                for item in account.get("contacts", [])
            ]
            for account_id, account in data["accounts"].items()
        }

    def apply_retention(self) -> None:
        """
        Delete backups beyond the newest retention_count ones.

        A retention_count of 0 keeps everything.
        """
        if self.retention_count == 0:
            return

        for backup in self.list_backups()[self.retention_count :]:
            with contextlib.suppress(OSError):
                backup.unlink()
                logger.debug(f"Removed old backup {backup}")
