"""In-memory account store, used by tests and when embedding the engine."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterable

from contact_mirror.store.base import (
    Account,
    AccountStore,
    AccountUnavailableError,
)
from contact_mirror.sync.contact import CONTACT_FIELDS, ContactRecord, GoldenContact


class InMemoryAccountStore(AccountStore):
    """
    Account store that keeps every account's records in a dictionary.

    Usage:
        store = InMemoryAccountStore()
        store.add_account("icloud", "iCloud")
        store.add_record(ContactRecord(id="1", account_id="icloud", given_name="Jo"))
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._records: dict[str, dict[str, ContactRecord]] = {}
        self._lock = threading.Lock()

    def add_account(self, account_id: str, display_name: str = "") -> Account:
        """Create an empty account (no-op if it already exists)."""
        with self._lock:
            account = self._accounts.setdefault(
                account_id, Account(id=account_id, display_name=display_name)
            )
            self._records.setdefault(account_id, {})
            return account

    def add_record(self, record: ContactRecord) -> ContactRecord:
        """Store a record as-is under its own id and account."""
        with self._lock:
            self._require(record.account_id)[record.id] = record
            return record

    def list_accounts(self) -> list[Account]:
        with self._lock:
            return list(self._accounts.values())

    def fetch_records(
        self, account_id: str, fields: Iterable[str] = CONTACT_FIELDS
    ) -> list[ContactRecord]:
        with self._lock:
            return list(self._require(account_id).values())

    def insert_record(self, account_id: str, contact: GoldenContact) -> ContactRecord:
        with self._lock:
            records = self._require(account_id)
            record = ContactRecord.from_golden(
                contact, record_id=uuid.uuid4().hex, account_id=account_id
            )
            records[record.id] = record
            return record

    def delete_record(self, account_id: str, record_id: str) -> None:
        with self._lock:
            # Deleting a record that is already gone is a no-op
            self._require(account_id).pop(record_id, None)

    def _require(self, account_id: str) -> dict[str, ContactRecord]:
        try:
            return self._records[account_id]
        except KeyError:
            raise AccountUnavailableError(f"Unknown account: {account_id}") from None

    def __repr__(self) -> str:
        return f"InMemoryAccountStore(accounts={list(self._accounts)!r})"
