"""
Path utilities for configuration and data directory resolution.

Provides consistent path resolution for the contact-mirror configuration
directory and the local account store across all modules.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".contact-mirror"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "CONTACT_MIRROR_CONFIG_DIR"

# Sub-directory of the config dir holding the JSON account store
DEFAULT_STORE_DIRNAME = "accounts"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. CONTACT_MIRROR_CONFIG_DIR environment variable
        3. Default directory (~/.contact-mirror)

    Args:
        config_dir: Optional explicit configuration directory path.
                   Can be a Path object or string.

    Returns:
        Resolved Path to the configuration directory (expanduser and resolve applied)
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def resolve_store_dir(config_dir: Path, store_dir: Path | str | None = None) -> Path:
    """Return the JSON store directory, defaulting to <config_dir>/accounts."""
    if store_dir:
        return Path(store_dir).expanduser().resolve()
    return config_dir / DEFAULT_STORE_DIRNAME
