"""
contact_mirror.utils - Utility module

Common utilities including normalization, paths and logging configuration.
"""

from contact_mirror.utils.normalization import (
    name_key,
    normalize_email,
    normalize_phone,
    normalize_text,
)
from contact_mirror.utils.paths import DEFAULT_CONFIG_DIR, resolve_config_dir

__all__ = [
    "name_key",
    "normalize_email",
    "normalize_phone",
    "normalize_text",
    "resolve_config_dir",
    "DEFAULT_CONFIG_DIR",
]
