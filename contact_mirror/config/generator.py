"""
Generator for the documented default config.yaml.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Every option is commented out, so the generated file loads as an
    empty configuration until the user edits it.

    Returns:
        String containing YAML configuration with comments
    """
    return """# contact-mirror Configuration
# ============================
#
# Default options for contact-mirror.
# CLI arguments always override these values.
#
# To use this configuration:
#   1. Save as ~/.contact-mirror/config.yaml (or pass --config-file)
#   2. Uncomment and modify options as needed


# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: true

# Directory for dated log files
# Default: ~/.contact-mirror/logs
# log_dir: /path/to/logs

# Number of log files to keep (0 = keep all)
# Default: 10
# log_retention_count: 10


# Store Options
# -------------

# Directory holding one JSON file per account
# Default: ~/.contact-mirror/accounts
# store_dir: /path/to/accounts


# Sync Behavior
# -------------

# How duplicate contacts are detected across accounts
# Options:
#   - email_graph: same full name and at least one shared email address
#   - name_match: same full name, confirmed once per name
# Default: email_graph
# clustering: email_graph

# Answer used for name_match when not asking interactively
# Options:
#   - ask: prompt for each name
#   - same: treat same-named contacts as one person
#   - different: treat same-named contacts as different people
# Default: ask
# name_match_default: ask

# How the merged contacts are written to each account
# Options:
#   - replace: add the merged contacts, then remove the contacts that were
#              there before the sync (only once every account was written)
#   - append: add the merged contacts and keep the existing ones
# Default: replace
# save_mode: replace

# Number of accounts read or written in parallel
# Default: 4
# max_workers: 4

# Seconds to wait for all accounts to be read (or written) before failing
# Default: no timeout
# operation_timeout: 120


# Backup Options
# --------------

# Snapshot every selected account before writing to it
# Default: true
# backup_enabled: true

# Directory for backup files
# Default: ~/.contact-mirror/backups
# backup_dir: /path/to/backups

# Number of backups to keep (0 = keep all)
# Default: 10
# backup_retention_count: 10
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save the default configuration file to the given path.

    Creates parent directories if needed and restricts the file to its owner.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite an existing file

    Returns:
        Tuple of (success, error_message)
    """
    config_path = config_path.expanduser().resolve()

    if config_path.exists() and not overwrite:
        return (
            False,
            f"Configuration file already exists: {config_path}\n"
            "Use --force to overwrite.",
        )

    try:
        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)
    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)

    logger.info(f"Created configuration file: {config_path}")
    return (True, None)
