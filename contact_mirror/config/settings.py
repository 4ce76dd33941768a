"""
Typed settings built from a validated configuration dictionary.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from contact_mirror.utils.paths import resolve_store_dir

DEFAULT_MAX_WORKERS = 4
DEFAULT_RETENTION_COUNT = 10


@dataclass
class SyncSettings:
    """
    Effective settings for one invocation.

    Paths that are not configured are derived from the config directory.

    Usage:
        config = ConfigLoader(config_dir).load_and_validate()
        settings = SyncSettings.from_config(config, config_dir)
    """

    config_dir: Path
    store_dir: Path
    log_dir: Path
    backup_dir: Path
    verbose: bool = False
    log_retention_count: int = DEFAULT_RETENTION_COUNT
    clustering: str = "email_graph"
    save_mode: str = "replace"
    max_workers: int = DEFAULT_MAX_WORKERS
    operation_timeout: Optional[float] = None
    name_match_default: str = "ask"
    backup_enabled: bool = True
    backup_retention_count: int = DEFAULT_RETENTION_COUNT

    @classmethod
    def from_config(cls, config: dict[str, Any], config_dir: Path) -> SyncSettings:
        """
        Build settings from a configuration dictionary.

        Args:
            config: Validated configuration (may be empty)
            config_dir: Resolved configuration directory

        Returns:
            SyncSettings with defaults for every missing key
        """
        config_dir = Path(config_dir)

        def path_option(key: str, default: Path) -> Path:
            value = config.get(key)
            return Path(value).expanduser() if value else default

        timeout = config.get("operation_timeout")
        return cls(
            config_dir=config_dir,
            store_dir=resolve_store_dir(config_dir, config.get("store_dir")),
            log_dir=path_option("log_dir", config_dir / "logs"),
            backup_dir=path_option("backup_dir", config_dir / "backups"),
            verbose=config.get("verbose", False),
            log_retention_count=config.get(
                "log_retention_count", DEFAULT_RETENTION_COUNT
            ),
            clustering=config.get("clustering", "email_graph"),
            save_mode=config.get("save_mode", "replace"),
            max_workers=config.get("max_workers", DEFAULT_MAX_WORKERS),
            operation_timeout=float(timeout) if timeout is not None else None,
            name_match_default=config.get("name_match_default", "ask"),
            backup_enabled=config.get("backup_enabled", True),
            backup_retention_count=config.get(
                "backup_retention_count", DEFAULT_RETENTION_COUNT
            ),
        )
