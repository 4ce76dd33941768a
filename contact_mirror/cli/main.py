"""
Command-line interface for contact_mirror.

Provides CLI commands for granting access, managing accounts and mirroring
contacts across every selected account.

Usage:
    # Show help
    contact-mirror --help

    # Grant access to the local account store
    contact-mirror auth

    # Create accounts
    contact-mirror add-account Work
    contact-mirror add-account Personal

    # Mirror contacts
    contact-mirror sync --all
    contact-mirror sync -a work -a personal --dry-run
"""

import sys
from pathlib import Path
from typing import Optional

import click

from contact_mirror import __version__
from contact_mirror.auth.gate import (
    AuthorizationError,
    AuthorizationStatus,
    FileAuthorizationGate,
)
from contact_mirror.backup.manager import BackupManager
from contact_mirror.cli.formatters import (
    confirm_same_person,
    show_accounts,
    show_cluster_review,
    show_golden_preview,
    show_progress,
)
from contact_mirror.config.generator import save_config_file
from contact_mirror.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader
from contact_mirror.config.settings import SyncSettings
from contact_mirror.store.base import AccountStoreError
from contact_mirror.store.json_store import JsonAccountStore
from contact_mirror.sync.cluster import (
    CLUSTERING_STRATEGIES,
    PairResolver,
    always_same,
    create_clusterer,
    never_same,
)
from contact_mirror.sync.engine import (
    SaveError,
    SaveMode,
    SyncError,
    SyncOrchestrator,
    SyncPermissionError,
    SyncState,
)
from contact_mirror.utils.logging import cleanup_old_logs, get_logger, setup_logging
from contact_mirror.utils.paths import CONFIG_DIR_ENV_VAR, resolve_config_dir

ACCESS_PROMPT = (
    "Allow contact-mirror to read and write the contacts in your local accounts?"
)


def get_config_file(config_dir: Path, config_file: Optional[str]) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file).expanduser()
    return config_dir / DEFAULT_CONFIG_FILE


def build_gate(config_dir: Path) -> FileAuthorizationGate:
    return FileAuthorizationGate(
        config_dir, confirm=lambda: click.confirm(ACCESS_PROMPT, default=True)
    )


def build_resolver(name_match_default: str) -> PairResolver:
    """Pair resolver for name_match clustering."""
    if name_match_default == "same":
        return always_same
    if name_match_default == "different":
        return never_same
    return confirm_same_person


def fail(message: str) -> None:
    """Print an error in red and exit with status 1."""
    click.echo(click.style(message, fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="contact-mirror")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar=CONFIG_DIR_ENV_VAR,
    help="Configuration directory path (default: ~/.contact-mirror).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="CONTACT_MIRROR_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: Optional[str],
    config_file: Optional[str],
) -> None:
    """
    Mirror contacts across accounts.

    Reads every selected account, merges duplicate people into one record
    without losing any data, and writes the same contact set back to every
    account.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = resolve_config_dir(config_dir)
    resolved_config_file = get_config_file(resolved_config_dir, config_file)
    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Keep going with defaults
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    settings = SyncSettings.from_config(config, resolved_config_dir)
    settings.verbose = verbose or settings.verbose
    ctx.obj["config"] = config
    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = settings.verbose

    setup_logging(verbose=settings.verbose, log_dir=settings.log_dir)
    if settings.log_retention_count > 0:
        cleanup_old_logs(log_dir=settings.log_dir, keep_count=settings.log_retention_count)


# =============================================================================
# Auth Command
# =============================================================================


@cli.command("auth")
@click.option("--revoke", is_flag=True, help="Forget the stored access decision.")
@click.pass_context
def auth_command(ctx: click.Context, revoke: bool) -> None:
    """
    Grant (or revoke) access to the local contact accounts.

    Examples:

        contact-mirror auth

        contact-mirror auth --revoke
    """
    logger = get_logger(__name__)
    gate = build_gate(ctx.obj["config_dir"])

    try:
        if revoke:
            if gate.revoke():
                click.echo(click.style("Contacts access revoked.", fg="green"))
            else:
                click.echo("No access decision was stored.")
            return

        status = gate.current_status()
        if status == AuthorizationStatus.AUTHORIZED:
            click.echo(click.style("Contacts access already granted.", fg="green"))
            return
        if status == AuthorizationStatus.RESTRICTED:
            fail("Contacts access is restricted and cannot be changed.")

        if gate.request_access():
            click.echo(click.style("Contacts access granted.", fg="green"))
        else:
            fail("Contacts access denied. Run 'contact-mirror auth' to try again.")
    except AuthorizationError as e:
        logger.error(f"Authorization failed: {e}")
        fail(f"Error: {e}")


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """
    Show access status, store location and accounts.

    Example:

        contact-mirror status
    """
    logger = get_logger(__name__)
    settings: SyncSettings = ctx.obj["settings"]

    click.echo("=== Contact Mirror Status ===\n")
    click.echo(f"Configuration directory: {settings.config_dir}")
    config_file = ctx.obj["config_file"]
    click.echo(
        f"Configuration file: {config_file}"
        + ("" if config_file.exists() else " (not found, using defaults)")
    )
    click.echo(f"Account store: {settings.store_dir}")

    status = build_gate(settings.config_dir).current_status()
    status_color = "green" if status == AuthorizationStatus.AUTHORIZED else "yellow"
    click.echo(f"Contacts access: {click.style(status.value, fg=status_color)}")
    click.echo(f"Clustering: {settings.clustering}, save mode: {settings.save_mode}")
    click.echo()

    try:
        accounts = JsonAccountStore(settings.store_dir).list_accounts()
    except AccountStoreError as e:
        logger.exception(f"Error reading accounts: {e}")
        fail(f"Error: {e}")
        return

    click.echo(f"Accounts: {len(accounts)}")
    for account in accounts:
        click.echo(f"  {account.label}")
    click.echo()

    if status != AuthorizationStatus.AUTHORIZED:
        click.echo(click.style("Setup required: contacts access not granted.", fg="yellow"))
        click.echo("  Run: contact-mirror auth")
    elif len(accounts) < 2:
        click.echo(click.style("Setup required: at least two accounts.", fg="yellow"))
        click.echo("  Run: contact-mirror add-account NAME")
    else:
        click.echo(click.style("Ready to sync!", fg="green"))
        click.echo("Run 'contact-mirror sync --all' to mirror contacts.")


# =============================================================================
# Account Commands
# =============================================================================


@cli.command("accounts")
@click.pass_context
def accounts_command(ctx: click.Context) -> None:
    """List the accounts in the local store."""
    logger = get_logger(__name__)
    store = JsonAccountStore(ctx.obj["settings"].store_dir)

    try:
        accounts = store.list_accounts()
        counts = {a.id: len(store.fetch_records(a.id)) for a in accounts}
    except AccountStoreError as e:
        logger.exception(f"Error listing accounts: {e}")
        fail(f"Error: {e}")
        return

    click.echo("=== Accounts ===\n")
    show_accounts(accounts, counts)


@cli.command("add-account")
@click.argument("name")
@click.option("--id", "account_id", help="Account id (default: derived from NAME).")
@click.pass_context
def add_account_command(ctx: click.Context, name: str, account_id: Optional[str]) -> None:
    """
    Create an empty account in the local store.

    Examples:

        contact-mirror add-account "Work"

        contact-mirror add-account "Personal" --id home
    """
    logger = get_logger(__name__)
    store = JsonAccountStore(ctx.obj["settings"].store_dir)

    try:
        account = store.create_account(name, account_id=account_id)
    except AccountStoreError as e:
        logger.error(f"Failed to create account: {e}")
        fail(f"Error: {e}")
        return

    click.echo(click.style(f"Created account {account.label}", fg="green"))


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    All options are written commented out with their defaults.

    Examples:

        contact-mirror init-config

        contact-mirror init-config --force
    """
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")
    success, error = save_config_file(config_file, overwrite=force)

    if not success:
        fail(f"Error: {error}")

    click.echo(click.style("Configuration file created successfully!", fg="green"))
    click.echo(f"\nLocation: {config_file}")
    click.echo("\nNext steps:")
    click.echo("1. Edit the file to uncomment and configure desired options")
    click.echo("2. Run 'contact-mirror --help' to see available commands")


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--account",
    "-a",
    "account_ids",
    multiple=True,
    help="Account id to include (repeat for each account).",
)
@click.option("--all", "all_accounts", is_flag=True, help="Include every account.")
@click.option(
    "--strategy",
    "-s",
    type=click.Choice(CLUSTERING_STRATEGIES, case_sensitive=False),
    default=None,
    help="Duplicate detection strategy (default: from config, else email_graph).",
)
@click.option(
    "--mode",
    "-m",
    type=click.Choice([m.value for m in SaveMode], case_sensitive=False),
    default=None,
    help="How merged contacts are written (default: from config, else replace).",
)
@click.option("--yes", "-y", is_flag=True, help="Approve the merge without asking.")
@click.option(
    "--dry-run", "-n", is_flag=True, help="Analyze and preview without saving."
)
@click.option(
    "--no-backup",
    is_flag=True,
    help="Skip the snapshot taken before saving (not recommended).",
)
@click.pass_context
def sync_command(
    ctx: click.Context,
    account_ids: tuple[str, ...],
    all_accounts: bool,
    strategy: Optional[str],
    mode: Optional[str],
    yes: bool,
    dry_run: bool,
    no_backup: bool,
) -> None:
    """
    Mirror contacts across the selected accounts.

    Every selected account ends up with the same contacts. People found in
    more than one account are merged into a single contact after you
    approve the list of duplicate groups.

    Examples:

        # Mirror every account
        contact-mirror sync --all

        # Preview without saving
        contact-mirror sync -a work -a personal --dry-run

        # Ask about every shared name instead of requiring a shared email
        contact-mirror sync --all --strategy name_match
    """
    logger = get_logger(__name__)
    settings: SyncSettings = ctx.obj["settings"]
    verbose = ctx.obj["verbose"]

    effective_strategy = strategy or settings.clustering
    effective_mode = SaveMode(mode or settings.save_mode)

    store = JsonAccountStore(settings.store_dir)
    try:
        accounts = store.list_accounts()
    except AccountStoreError as e:
        logger.exception(f"Error listing accounts: {e}")
        fail(f"Error: {e}")
        return

    labels = {a.id: a.label for a in accounts}
    selected = [a.id for a in accounts] if all_accounts else list(account_ids)
    unknown = [a for a in selected if a not in labels]
    if unknown:
        fail(f"Error: Unknown account(s): {', '.join(unknown)}")
    if len(set(selected)) < 2:
        fail("Error: Select at least two accounts (use -a ID -a ID or --all).")

    backup_manager = None
    if settings.backup_enabled and not no_backup and not dry_run:
        backup_manager = BackupManager(
            settings.backup_dir, retention_count=settings.backup_retention_count
        )

    orchestrator = SyncOrchestrator(
        store,
        gate=build_gate(settings.config_dir),
        clusterer=create_clusterer(
            effective_strategy, resolver=build_resolver(settings.name_match_default)
        ),
        save_mode=effective_mode,
        max_workers=settings.max_workers,
        operation_timeout=settings.operation_timeout,
        backup_manager=backup_manager,
        on_progress=show_progress,
    )

    if verbose:
        click.echo("\nSync configuration:")
        click.echo(f"  Accounts: {', '.join(labels[a] for a in selected)}")
        click.echo(f"  Clustering: {effective_strategy}")
        click.echo(f"  Save mode: {effective_mode.value}")
        click.echo(f"  Backup: {'enabled' if backup_manager else 'disabled'}")
        click.echo()

    try:
        if dry_run:
            result = orchestrator.preview(selected)
            if result.clusters:
                show_cluster_review(result.clusters, labels)
            click.echo("\n" + "=" * 50)
            click.echo(result.summary(labels))
            click.echo("=" * 50)
            if verbose:
                show_golden_preview(result.golden)
            click.echo(click.style("\nDry run complete. No changes were made.", fg="yellow"))
            click.echo("Run without --dry-run to apply these changes.")
            return

        result = orchestrator.begin_sync(selected)

        if result.awaiting_approval:
            show_cluster_review(orchestrator.pending_clusters, labels)
            approved = yes or click.confirm("Approve merge?", default=False)
            if not approved:
                orchestrator.cancel()
                click.echo(click.style("Nothing was saved.", fg="yellow"))
                return
            result = orchestrator.approve()

        click.echo("\n" + "=" * 50)
        click.echo(result.summary(labels))
        click.echo("=" * 50)
        if result.backup_file:
            click.echo(f"\nBackup: {result.backup_file}")
        click.echo(click.style("\nSync completed successfully!", fg="green"))

    except SyncPermissionError as e:
        logger.error(f"Sync failed: {e}")
        click.echo(click.style(f"\nSync failed: {e}", fg="red"), err=True)
        click.echo("Run: contact-mirror auth", err=True)
        sys.exit(1)
    except SaveError as e:
        logger.error(f"Sync failed: {e}")
        click.echo(click.style(f"\nSync failed: {e}", fg="red"), err=True)
        for account_id, message in e.failed_accounts.items():
            click.echo(f"  {labels.get(account_id, account_id)}: {message}", err=True)
        if e.written_accounts:
            written = ", ".join(labels.get(a, a) for a in e.written_accounts)
            click.echo(
                click.style(f"Accounts fully written: {written}", fg="yellow"), err=True
            )
        sys.exit(1)
    except SyncError as e:
        logger.error(f"Sync failed: {e}")
        click.echo(click.style(f"\nSync failed: {e}", fg="red"), err=True)
        sys.exit(1)
    finally:
        # Ctrl-C at a prompt must not leave a pending run behind
        if orchestrator.state == SyncState.AWAITING_APPROVAL:
            orchestrator.cancel()


# =============================================================================
# List-Backups Command
# =============================================================================


@cli.command("list-backups")
@click.pass_context
def list_backups_command(ctx: click.Context) -> None:
    """
    List snapshots taken before previous syncs.

    Example:

        contact-mirror list-backups
    """
    settings: SyncSettings = ctx.obj["settings"]
    manager = BackupManager(
        settings.backup_dir, retention_count=settings.backup_retention_count
    )
    backups = manager.list_backups()

    if not backups:
        click.echo(f"No backups found in {settings.backup_dir}")
        return

    click.echo(f"=== Backups ({settings.backup_dir}) ===\n")
    for backup in backups:
        data = manager.load_backup(backup)
        if data is None:
            click.echo(f"  {backup.name}  " + click.style("(unreadable)", fg="yellow"))
            continue
        accounts = ", ".join(
            f"{account_id}: {len(account.get('contacts', []))}"
            for account_id, account in data["accounts"].items()
        )
        click.echo(f"  {backup.name}  {data.get('timestamp', '')}  [{accounts}]")
