"""Ledger store implementations."""

from kira_advisor.config import get_settings
from kira_advisor.store.base import DIRECTORY_SEARCH_LIMIT, LedgerStore
from kira_advisor.store.firestore import FirestoreRestStore
from kira_advisor.store.memory import InMemoryLedgerStore


def create_store() -> LedgerStore:
    """Create the ledger store selected by STORE_BACKEND."""
    settings = get_settings()
    if settings.store_backend == "firestore":
        return FirestoreRestStore()
    if settings.store_seed_path:
        return InMemoryLedgerStore.from_yaml(settings.store_seed_path)
    return InMemoryLedgerStore()


__all__ = [
    "DIRECTORY_SEARCH_LIMIT",
    "LedgerStore",
    "InMemoryLedgerStore",
    "FirestoreRestStore",
    "create_store",
]
