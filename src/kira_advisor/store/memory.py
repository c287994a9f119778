"""In-process ledger store, optionally seeded from a YAML file."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog
import yaml  # type: ignore[import-untyped]

from kira_advisor.errors import ValidationError
from kira_advisor.models import (
    EntryKind,
    GreenAsset,
    GreenProduct,
    IndustryStats,
    LedgerEntry,
    Receipt,
    UserProfile,
    entry_from_dict,
)
from kira_advisor.store.base import DIRECTORY_SEARCH_LIMIT, LedgerStore

logger = structlog.get_logger(__name__)

SEED_SECTIONS = ("users", "greenAssets", "industryStats", "directory", "receipts")


class InMemoryLedgerStore(LedgerStore):
    """Dictionary-backed store holding raw camelCase documents."""

    def __init__(
        self,
        users: Mapping[str, Mapping[str, Any]] | None = None,
        green_assets: Mapping[str, Mapping[str, Any]] | None = None,
        industry_stats: Mapping[str, Mapping[str, Any]] | None = None,
        directory: Mapping[str, Mapping[str, Any]] | None = None,
        receipts: Mapping[str, Mapping[str, Mapping[str, Any]]] | None = None,
    ):
        self._users = copy.deepcopy(dict(users or {}))
        self._green_assets = copy.deepcopy(dict(green_assets or {}))
        self._industry_stats = copy.deepcopy(dict(industry_stats or {}))
        self._directory = copy.deepcopy(dict(directory or {}))
        self._receipts: dict[str, dict[str, dict[str, Any]]] = {
            user_id: copy.deepcopy(dict(docs)) for user_id, docs in (receipts or {}).items()
        }
        self._ledgers: dict[str, dict[EntryKind, dict[str, dict[str, Any]]]] = {}
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_yaml(cls, path: str | Path) -> InMemoryLedgerStore:
        """Load a store from a YAML seed file.

        The file is a mapping with optional ``users``, ``greenAssets``,
        ``industryStats``, ``directory``, and ``receipts`` sections, each keyed
        by document id (``receipts`` is keyed by user id, then receipt id).
        """
        seed_path = Path(path)
        raw = seed_path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{seed_path.name}: seed file must be a mapping")

        for section in SEED_SECTIONS:
            value = data.get(section)
            if value is not None and not isinstance(value, dict):
                raise ValueError(f"{seed_path.name}: {section} must be a mapping")

        logger.info(
            "store_seeded",
            path=str(seed_path),
            **{section: len(data.get(section) or {}) for section in SEED_SECTIONS},
        )
        return cls(
            users=data.get("users"),
            green_assets=data.get("greenAssets"),
            industry_stats=data.get("industryStats"),
            directory=data.get("directory"),
            receipts=data.get("receipts"),
        )

    async def get_user_profile(self, user_id: str) -> UserProfile | None:
        data = self._users.get(user_id)
        return UserProfile.from_dict(user_id, data) if data is not None else None

    async def get_green_asset(self, asset_id: str) -> GreenAsset | None:
        data = self._green_assets.get(asset_id)
        return GreenAsset.from_dict(asset_id, data) if data is not None else None

    async def get_industry_stats(self, industry: str) -> IndustryStats | None:
        data = self._industry_stats.get(industry)
        return IndustryStats.from_dict(industry, data) if data is not None else None

    async def search_green_directory(
        self, keyword: str, limit: int = DIRECTORY_SEARCH_LIMIT
    ) -> list[GreenProduct]:
        needle = keyword.strip().lower()
        matches = []
        for product_id in sorted(self._directory):
            product = GreenProduct.from_dict(product_id, self._directory[product_id])
            if needle in product.keywords:
                matches.append(product)
            if len(matches) >= limit:
                break
        return matches

    async def get_receipt(self, user_id: str, receipt_id: str) -> Receipt | None:
        data = self._receipts.get(user_id, {}).get(receipt_id)
        if data is None:
            return None
        return Receipt.from_dict({**data, "id": data.get("id", receipt_id)})

    async def save_receipt(
        self, user_id: str, receipt: Receipt, entries: Sequence[LedgerEntry]
    ) -> None:
        async with self._write_lock:
            receipts = dict(self._receipts.get(user_id, {}))
            if receipt.id in receipts:
                raise ValidationError(
                    f"Receipt {receipt.id!r} already exists", details={"receipt_id": receipt.id}
                )

            ledgers = {
                kind: dict(docs) for kind, docs in self._ledgers.get(user_id, {}).items()
            }
            for entry in entries:
                ledger = ledgers.setdefault(entry.kind, {})
                if entry.line_item.id in ledger:
                    raise ValidationError(
                        f"{entry.kind.value} entry for {entry.line_item.id!r} already exists",
                        details={"line_item_id": entry.line_item.id},
                    )
                ledger[entry.line_item.id] = entry.to_dict()

            receipts[receipt.id] = receipt.to_dict()
            # Swap in both views only once every entry has been staged.
            self._receipts[user_id] = receipts
            self._ledgers[user_id] = ledgers

        logger.debug(
            "receipt_saved", user_id=user_id, receipt_id=receipt.id, entries=len(entries)
        )

    async def list_ledger(self, user_id: str, kind: EntryKind) -> list[LedgerEntry]:
        docs = self._ledgers.get(user_id, {}).get(kind, {})
        return [entry_from_dict(doc) for doc in docs.values()]
