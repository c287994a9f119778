"""Ledger store contract consumed by the advisor core."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from kira_advisor.models import (
    EntryKind,
    GreenAsset,
    GreenProduct,
    IndustryStats,
    LedgerEntry,
    Receipt,
    UserProfile,
)

DIRECTORY_SEARCH_LIMIT = 5


class LedgerStore(ABC):
    """Keyed document access for profiles, reference data, and ledgers.

    Reference data (profiles, green assets, industry stats, the green
    directory) is read-only here. Receipts and ledger entries are written
    once through ``save_receipt`` and never updated.
    """

    @abstractmethod
    async def get_user_profile(self, user_id: str) -> UserProfile | None:
        """Return the user's profile, or None if there is none."""

    @abstractmethod
    async def get_green_asset(self, asset_id: str) -> GreenAsset | None:
        """Return a green asset catalog entry, or None."""

    @abstractmethod
    async def get_industry_stats(self, industry: str) -> IndustryStats | None:
        """Return stats for an industry, or None if none are recorded."""

    @abstractmethod
    async def search_green_directory(
        self, keyword: str, limit: int = DIRECTORY_SEARCH_LIMIT
    ) -> list[GreenProduct]:
        """Return up to ``limit`` directory products tagged with ``keyword``."""

    @abstractmethod
    async def get_receipt(self, user_id: str, receipt_id: str) -> Receipt | None:
        """Return one of the user's receipts, or None."""

    @abstractmethod
    async def save_receipt(
        self, user_id: str, receipt: Receipt, entries: Sequence[LedgerEntry]
    ) -> None:
        """Write a receipt and its ledger entries as one all-or-nothing unit.

        Raises if the receipt or any entry already exists; nothing is written
        in that case.
        """

    @abstractmethod
    async def list_ledger(self, user_id: str, kind: EntryKind) -> list[LedgerEntry]:
        """Return the user's ledger entries of one kind."""
