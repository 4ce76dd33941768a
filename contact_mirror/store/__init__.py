"""
contact_mirror.store - Account store interface and implementations
"""

from contact_mirror.store.base import (
    Account,
    AccountStore,
    AccountStoreError,
    AccountUnavailableError,
    PermissionDeniedError,
    TransientStoreError,
)
from contact_mirror.store.json_store import JsonAccountStore
from contact_mirror.store.memory import InMemoryAccountStore

__all__ = [
    "Account",
    "AccountStore",
    "AccountStoreError",
    "AccountUnavailableError",
    "PermissionDeniedError",
    "TransientStoreError",
    "InMemoryAccountStore",
    "JsonAccountStore",
]
