"""
contact_mirror.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from contact_mirror.config.generator import generate_default_config, save_config_file
from contact_mirror.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from contact_mirror.config.settings import SyncSettings

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "DEFAULT_CONFIG_FILE",
    "SyncSettings",
    "generate_default_config",
    "save_config_file",
]
