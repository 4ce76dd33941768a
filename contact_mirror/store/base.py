"""
Account store interface.

An account store gives access to several independently managed address-book
accounts. The sync engine only talks to stores through this interface:
- list the accounts
- fetch the raw records of one account (never unified across accounts)
- insert a new record into an account
- delete a record from an account
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

from contact_mirror.sync.contact import CONTACT_FIELDS, ContactRecord, GoldenContact


class AccountStoreError(Exception):
    """Raised when an account store operation fails."""

    pass


class PermissionDeniedError(AccountStoreError):
    """Raised when the store refuses access to its data."""

    pass


class AccountUnavailableError(AccountStoreError):
    """Raised when an account does not exist or cannot be reached."""

    pass


class TransientStoreError(AccountStoreError):
    """Raised on I/O failures that may succeed when the run is retried."""

    pass


@dataclass(frozen=True)
class Account:
    """An address-book account (container) in a store."""

    id: str
    display_name: str = ""

    @property
    def label(self) -> str:
        """Name for display, falling back to the id."""
        return self.display_name or self.id


class AccountStore(ABC):
    """
    Abstract account store.

    Implementations must return records exactly as stored in the requested
    account, tagged with that account's id, and must never merge records
    from several accounts into one.
    """

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """Return every account in the store."""

    @abstractmethod
    def fetch_records(
        self, account_id: str, fields: Iterable[str] = CONTACT_FIELDS
    ) -> list[ContactRecord]:
        """
        Return a snapshot of the records in one account.

        Args:
            account_id: Account to read
            fields: Names of the content fields the caller needs. Stores may
                    return more.

        Raises:
            AccountStoreError: On any failure
        """

    @abstractmethod
    def insert_record(self, account_id: str, contact: GoldenContact) -> ContactRecord:
        """
        Create a new record in an account from a golden contact.

        Returns:
            The stored record with its new id

        Raises:
            AccountStoreError: On any failure
        """

    @abstractmethod
    def delete_record(self, account_id: str, record_id: str) -> None:
        """
        Delete one record from an account.

        Raises:
            AccountStoreError: On any failure
        """

    def get_account(self, account_id: str) -> Account:
        """
        Return one account by id.

        Raises:
            AccountUnavailableError: If no such account exists
        """
        for account in self.list_accounts():
            if account.id == account_id:
                return account
        raise AccountUnavailableError(f"Unknown account: {account_id}")
