"""
Configuration loader for contact-mirror.

Provides YAML-based configuration file loading with support for:
- Loading configuration from the config directory or a custom file
- Graceful handling of missing configuration files
- Validation of known keys, their types and allowed values
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from contact_mirror.utils.paths import resolve_config_dir

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

logger = logging.getLogger(__name__)

VALID_CLUSTERING = ("email_graph", "name_match")
VALID_SAVE_MODES = ("replace", "append")
VALID_NAME_MATCH_DEFAULTS = ("ask", "same", "different")


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load_and_validate()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Optional[Path] = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.contact-mirror/ or $CONTACT_MIRROR_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    @property
    def config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns an empty dict if the file doesn't exist.

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        return self.load_from_file(self.config_path)

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Args:
            path: Path to the configuration file

        Returns:
            Dictionary of configuration values, or empty dict if the file
            doesn't exist or is empty

        Raises:
            ConfigError: If the file exists but cannot be read or parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        if config is None:
            logger.debug(f"Configuration file is empty: {path}")
            return {}

        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(config).__name__}"
            )

        logger.debug(f"Loaded configuration from {path}")
        return config

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and values.

        Unknown keys are ignored so older binaries accept newer files.

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        valid_keys: dict[str, type[Any] | tuple[type[Any], ...]] = {
            # Logging options
            "verbose": bool,
            "log_dir": str,
            "log_retention_count": int,
            # Store options
            "store_dir": str,
            # Sync options
            "clustering": str,
            "save_mode": str,
            "max_workers": int,
            "operation_timeout": (int, float),
            "name_match_default": str,
            # Backup options
            "backup_enabled": bool,
            "backup_dir": str,
            "backup_retention_count": int,
        }

        for key, value in config.items():
            if key not in valid_keys:
                continue
            expected_type = valid_keys[key]
            # bool is an int subclass; a YAML "true" is not a count
            if isinstance(value, bool) and expected_type is not bool:
                wrong_type = True
            else:
                wrong_type = not isinstance(value, expected_type)
            if wrong_type:
                if isinstance(expected_type, tuple):
                    type_name = " or ".join(t.__name__ for t in expected_type)
                else:
                    type_name = expected_type.__name__
                raise ConfigError(
                    f"Invalid type for '{key}': expected {type_name}, "
                    f"got {type(value).__name__}"
                )

        choices = {
            "clustering": VALID_CLUSTERING,
            "save_mode": VALID_SAVE_MODES,
            "name_match_default": VALID_NAME_MATCH_DEFAULTS,
        }
        for key, allowed in choices.items():
            if key in config and config[key] not in allowed:
                raise ConfigError(
                    f"Invalid {key} '{config[key]}'. "
                    f"Must be one of: {', '.join(allowed)}"
                )

        for key in ("max_workers",):
            if key in config and config[key] < 1:
                raise ConfigError(f"{key} must be >= 1, got {config[key]}")

        # 0 means keep everything
        for key in ("log_retention_count", "backup_retention_count"):
            if key in config and config[key] < 0:
                raise ConfigError(f"{key} must be >= 0, got {config[key]}")

        if "operation_timeout" in config and config["operation_timeout"] <= 0:
            raise ConfigError(
                f"operation_timeout must be > 0, got {config['operation_timeout']}"
            )

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
