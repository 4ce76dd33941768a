"""CLI package for contact_mirror."""

from contact_mirror.cli.formatters import (
    describe_contact,
    show_accounts,
    show_cluster_review,
    show_golden_preview,
    show_progress,
)
from contact_mirror.cli.main import build_resolver, cli, get_config_file

__all__ = [
    "build_resolver",
    "cli",
    "describe_contact",
    "get_config_file",
    "show_accounts",
    "show_cluster_review",
    "show_golden_preview",
    "show_progress",
]
