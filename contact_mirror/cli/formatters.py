"""CLI output formatting functions.

This module renders accounts, progress updates, the duplicate review list
and merged previews to the command line.
"""

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Union

import click

from contact_mirror.sync.contact import display_name

if TYPE_CHECKING:
    from contact_mirror.store.base import Account
    from contact_mirror.sync.contact import ContactRecord, GoldenContact
    from contact_mirror.sync.engine import SyncProgress

# Max entries shown per list before collapsing into "... and N more"
DISPLAY_LIMIT = 10

_STATE_COLORS = {
    "awaiting_approval": "yellow",
    "direct_save": "green",
}


def show_accounts(accounts: Sequence["Account"], counts: Mapping[str, int]) -> None:
    """
    Display the available accounts.

    Args:
        accounts: Accounts to list
        counts: Contact count per account id (missing ids are shown as "?")
    """
    if not accounts:
        click.echo("No accounts found.")
        click.echo("Run 'contact-mirror add-account NAME' to create one.")
        return

    width = max(len(account.id) for account in accounts)
    for account in accounts:
        count = counts.get(account.id)
        count_text = f"{count} contacts" if count is not None else "?"
        name = account.display_name or ""
        click.echo(f"  {account.id.ljust(width)}  {name}  ({count_text})")


def show_progress(progress: "SyncProgress") -> None:
    """
    Progress callback that echoes state change messages.

    Failures are left to the command's error handling.
    """
    if not progress.message or progress.state.value == "failed":
        return
    color = _STATE_COLORS.get(progress.state.value)
    message = click.style(progress.message, fg=color) if color else progress.message
    click.echo(message)


def describe_contact(contact: Union["ContactRecord", "GoldenContact"]) -> str:
    """One-line description: name, organization, emails and phones."""
    parts = [display_name(contact)]
    if contact.organization_name:
        parts.append(f"({contact.organization_name})")
    emails = ", ".join(e.value for e in contact.email_addresses)
    if emails:
        parts.append(f"<{emails}>")
    phones = ", ".join(p.value for p in contact.phone_numbers)
    if phones:
        parts.append(f"[{phones}]")
    return " ".join(parts)


def show_cluster_review(
    clusters: Sequence[Sequence["ContactRecord"]],
    account_labels: Mapping[str, str],
) -> None:
    """
    Display the duplicate groups awaiting approval.

    Args:
        clusters: Pending duplicate clusters
        account_labels: Display names keyed by account id
    """
    click.echo("\n=== Duplicate Groups ===")
    for number, cluster in enumerate(clusters[:DISPLAY_LIMIT], start=1):
        click.echo(
            f"\n{number}. {display_name(cluster[0])} ({len(cluster)} records)"
        )
        for record in cluster:
            label = account_labels.get(record.account_id, record.account_id)
            click.echo(f"     {label}: {describe_contact(record)}")
    if len(clusters) > DISPLAY_LIMIT:
        click.echo(f"\n... and {len(clusters) - DISPLAY_LIMIT} more groups")
    click.echo()


def show_golden_preview(golden: Sequence["GoldenContact"]) -> None:
    """Display the records a sync would write to every account."""
    click.echo("\n=== Contacts After Sync ===")
    for contact in golden[:DISPLAY_LIMIT]:
        click.echo(f"  + {describe_contact(contact)}")
    if len(golden) > DISPLAY_LIMIT:
        click.echo(f"  ... and {len(golden) - DISPLAY_LIMIT} more")


def confirm_same_person(first: "ContactRecord", second: "ContactRecord") -> bool:
    """Ask whether two same-named contacts are one person."""
    click.echo(f"\nSame name found in {first.account_id} and {second.account_id}:")
    click.echo(f"  {first.account_id}: {describe_contact(first)}")
    click.echo(f"  {second.account_id}: {describe_contact(second)}")
    return click.confirm(
        f"Is '{display_name(first)}' the same person in both accounts?",
        default=True,
    )
