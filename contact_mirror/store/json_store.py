"""
JSON directory account store.

Each account lives in one JSON file inside the store directory:

    <store_dir>/<account_id>.json

    {
        "version": "1.0",
        "id": "work",
        "display_name": "Work",
        "contacts": [ {...ContactRecord.to_dict()...}, ... ]
    }

Files are rewritten atomically (write to a temp file, then replace) so a
crash mid-write never leaves a truncated account behind.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from contact_mirror.store.base import (
    Account,
    AccountStore,
    AccountStoreError,
    AccountUnavailableError,
    PermissionDeniedError,
    TransientStoreError,
)
from contact_mirror.sync.contact import CONTACT_FIELDS, ContactRecord, GoldenContact

logger = logging.getLogger(__name__)

STORE_VERSION = "1.0"
ACCOUNT_SUFFIX = ".json"

# Account ids double as file names
_ACCOUNT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class JsonAccountStore(AccountStore):
    """
    Account store backed by a directory of JSON files.

    Attributes:
        store_dir: Directory holding one file per account

    Usage:
        store = JsonAccountStore(Path("~/.contact-mirror/accounts"))
        store.create_account("Personal")
        records = store.fetch_records("personal")
    """

    def __init__(self, store_dir: Path | str):
        self.store_dir = Path(store_dir).expanduser()
        self._lock = threading.Lock()

    # Account management -------------------------------------------------------

    def create_account(self, display_name: str, account_id: str | None = None) -> Account:
        """
        Create an empty account file.

        Args:
            display_name: Human-readable name
            account_id: File-safe id; derived from the name when omitted

        Raises:
            AccountStoreError: If the id is invalid or already taken
        """
        account_id = account_id or _slugify(display_name) or uuid.uuid4().hex[:8]
        if not _ACCOUNT_ID_PATTERN.match(account_id):
            raise AccountStoreError(
                f"Invalid account id '{account_id}': use letters, digits, '.', '_' or '-'"
            )

        with self._lock:
            path = self._account_path(account_id)
            if path.exists():
                raise AccountStoreError(f"Account already exists: {account_id}")
            try:
                self.store_dir.mkdir(parents=True, exist_ok=True)
            except PermissionError as e:
                raise PermissionDeniedError(
                    f"Cannot create store directory {self.store_dir}: {e}"
                ) from e
            self._write(
                path,
                {
                    "version": STORE_VERSION,
                    "id": account_id,
                    "display_name": display_name,
                    "contacts": [],
                },
            )

        logger.info(f"Created account '{display_name}' ({account_id})")
        return Account(id=account_id, display_name=display_name)

    def list_accounts(self) -> list[Account]:
        if not self.store_dir.exists():
            return []
        try:
            paths = sorted(self.store_dir.glob(f"*{ACCOUNT_SUFFIX}"))
        except PermissionError as e:
            raise PermissionDeniedError(f"Cannot read {self.store_dir}: {e}") from e

        accounts = []
        with self._lock:
            for path in paths:
                data = self._read(path)
                accounts.append(
                    Account(
                        id=data.get("id") or path.stem,
                        display_name=data.get("display_name", ""),
                    )
                )
        return accounts

    # Records -------------------------------------------------------------------

    def fetch_records(
        self, account_id: str, fields: Iterable[str] = CONTACT_FIELDS
    ) -> list[ContactRecord]:
        with self._lock:
            data = self._load_account(account_id)
        try:
            return [
                ContactRecord.from_dict(item, account_id=account_id)
                for item in data.get("contacts", [])
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise TransientStoreError(
                f"Malformed contact in account {account_id}: {e}"
            ) from e

    def insert_record(self, account_id: str, contact: GoldenContact) -> ContactRecord:
        record = ContactRecord.from_golden(
            contact, record_id=uuid.uuid4().hex, account_id=account_id
        )
        with self._lock:
            data = self._load_account(account_id)
            data.setdefault("contacts", []).append(record.to_dict())
            self._write(self._account_path(account_id), data)
        return record

    def delete_record(self, account_id: str, record_id: str) -> None:
        with self._lock:
            data = self._load_account(account_id)
            contacts = data.get("contacts", [])
            remaining = [c for c in contacts if str(c.get("id")) != record_id]
            # Deleting a record that is already gone is a no-op
            if len(remaining) != len(contacts):
                data["contacts"] = remaining
                self._write(self._account_path(account_id), data)

    # Internals -----------------------------------------------------------------

    def _account_path(self, account_id: str) -> Path:
        return self.store_dir / f"{account_id}{ACCOUNT_SUFFIX}"

    def _load_account(self, account_id: str) -> dict[str, Any]:
        path = self._account_path(account_id)
        if not _ACCOUNT_ID_PATTERN.match(account_id) or not path.exists():
            raise AccountUnavailableError(f"Unknown account: {account_id}")
        return self._read(path)

    def _read(self, path: Path) -> dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except PermissionError as e:
            raise PermissionDeniedError(f"Cannot read {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise TransientStoreError(f"Corrupt account file {path}: {e}") from e
        except OSError as e:
            raise TransientStoreError(f"Failed to read {path}: {e}") from e

        if not isinstance(data, dict):
            raise TransientStoreError(
                f"Account file {path} must contain an object, got {type(data).__name__}"
            )
        return data

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, path)
        except PermissionError as e:
            raise PermissionDeniedError(f"Cannot write {path}: {e}") from e
        except OSError as e:
            raise TransientStoreError(f"Failed to write {path}: {e}") from e

    def __repr__(self) -> str:
        return f"JsonAccountStore(store_dir={str(self.store_dir)!r})"


def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug
