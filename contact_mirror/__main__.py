"""
Entry point for running contact_mirror as a module.

Usage:
    python -m contact_mirror --help
    python -m contact_mirror accounts
    python -m contact_mirror sync --all --dry-run
"""

from contact_mirror.cli import cli

if __name__ == "__main__":
    cli()
