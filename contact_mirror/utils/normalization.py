"""
String normalization utilities for contact comparison.

Every comparison the clustering and merge engines make goes through these
helpers, so two values are "the same" for bucketing, edge building and
duplicate suppression under exactly one set of rules.
"""

from __future__ import annotations

import re

# Separator between given and family name in a name key
NAME_KEY_SEPARATOR = "||"

# Separator between components of composite value keys
COMPOSITE_SEPARATOR = "|"


def normalize_text(value: str | None) -> str:
    """Lower-case and trim a free-form string. None becomes ""."""
    if not value:
        return ""
    return value.strip().lower()


def normalize_email(value: str | None) -> str:
    """Normalize an email address for comparison (lower-cased, trimmed)."""
    return normalize_text(value)


def normalize_phone(value: str | None) -> str:
    """Normalize a phone number for comparison (digits only)."""
    if not value:
        return ""
    return re.sub(r"\D", "", value)


def name_key(given_name: str | None, family_name: str | None) -> str:
    """
    Build the name bucket key from given and family name.

    Returns:
        "given||family" lower-cased and trimmed, or "" when both parts are
        blank. The empty key marks a record that must never be bucketed
        with other nameless records.
    """
    given = normalize_text(given_name)
    family = normalize_text(family_name)
    if not given and not family:
        return ""
    return f"{given}{NAME_KEY_SEPARATOR}{family}"


def composite_key(*parts: str | None) -> str:
    """Join several string parts into one case-insensitive comparison key."""
    return COMPOSITE_SEPARATOR.join(normalize_text(p) for p in parts)
