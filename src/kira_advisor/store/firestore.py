"""Ledger store backed by the Firestore REST API."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from kira_advisor.config import get_settings
from kira_advisor.errors import ExternalServiceError, ValidationError
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

FIRESTORE_API_URL = "https://firestore.googleapis.com/v1"

USERS = "users"
GREEN_ASSETS = "greenAssets"
INDUSTRY_STATS = "industry_stats"
DIRECTORY = "myhijaudirectory"
RECEIPTS = "receipts"
LEDGER_COLLECTIONS = {
    EntryKind.CARBON: "carbonItems",
    EntryKind.GITA: "gitaItems",
}


def encode_value(value: Any) -> dict[str, Any]:
    """Encode a Python value as a Firestore typed value."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    raise TypeError(f"Cannot encode {type(value).__name__} for Firestore")


def encode_fields(data: dict[str, Any]) -> dict[str, Any]:
    return {key: encode_value(value) for key, value in data.items()}


def decode_value(value: dict[str, Any]) -> Any:
    """Decode a Firestore typed value into a Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    for key in ("stringValue", "timestampValue", "referenceValue"):
        if key in value:
            return value[key]
    return None


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: decode_value(value) for key, value in fields.items()}


class FirestoreRestStore(LedgerStore):
    """Async Firestore client over httpx.

    Reads are retried on transport errors with exponential backoff. The
    receipt write is a single ``commit`` call, which Firestore applies
    atomically; it is never retried.
    """

    def __init__(
        self,
        project_id: str | None = None,
        database: str | None = None,
        access_token: str | None = None,
        base_url: str = FIRESTORE_API_URL,
    ):
        settings = get_settings()
        self.project_id = project_id or settings.firestore_project_id
        if not self.project_id:
            raise ValueError("FIRESTORE_PROJECT_ID must be set for the firestore store")
        self._database = database or settings.firestore_database
        self._access_token = access_token or settings.firestore_access_token.get_secret_value()
        self._timeout = settings.store_timeout
        self._max_retries = settings.store_max_retries
        self._base_url = base_url.rstrip("/")

        self._client: httpx.AsyncClient | None = None

    @property
    def documents_root(self) -> str:
        """Resource name prefix for documents in this database."""
        return f"projects/{self.project_id}/databases/{self._database}/documents"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> FirestoreRestStore:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        retry: bool = True,
        retry_count: int = 0,
    ) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(
                method=method, url=path, json=json, headers=self._get_headers()
            )
        except httpx.RequestError as e:
            if retry and retry_count < self._max_retries:
                await asyncio.sleep(2**retry_count)
                return await self._request(method, path, json, retry, retry_count + 1)
            raise ExternalServiceError("store", f"Request failed: {e}") from e

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        if response.status_code >= 400:
            try:
                details = response.json() if response.content else {}
            except ValueError:
                details = {"raw": response.text[:500] if response.text else "empty response"}
            raise ExternalServiceError(
                "store", f"API error: {response.status_code}", details=details
            )

    async def _get_document(self, *segments: str) -> dict[str, Any] | None:
        path = "/" + self.documents_root + "/" + "/".join(quote(s, safe="") for s in segments)
        response = await self._request("GET", path)
        if response.status_code == 404:
            return None
        self._raise_for_error(response)
        return decode_fields(response.json().get("fields", {}))

    async def _run_query(
        self, structured_query: dict[str, Any], parent: str = ""
    ) -> list[dict[str, Any]]:
        root = self.documents_root + (f"/{parent}" if parent else "")
        response = await self._request(
            "POST", f"/{root}:runQuery", json={"structuredQuery": structured_query}
        )
        self._raise_for_error(response)
        results = []
        for row in response.json():
            document = row.get("document")
            if document:
                doc_id = document["name"].rsplit("/", 1)[-1]
                results.append({"_id": doc_id, **decode_fields(document.get("fields", {}))})
        return results

    async def get_user_profile(self, user_id: str) -> UserProfile | None:
        data = await self._get_document(USERS, user_id)
        return UserProfile.from_dict(user_id, data) if data is not None else None

    async def get_green_asset(self, asset_id: str) -> GreenAsset | None:
        data = await self._get_document(GREEN_ASSETS, asset_id)
        return GreenAsset.from_dict(asset_id, data) if data is not None else None

    async def get_industry_stats(self, industry: str) -> IndustryStats | None:
        data = await self._get_document(INDUSTRY_STATS, industry)
        return IndustryStats.from_dict(industry, data) if data is not None else None

    async def search_green_directory(
        self, keyword: str, limit: int = DIRECTORY_SEARCH_LIMIT
    ) -> list[GreenProduct]:
        rows = await self._run_query({
            "from": [{"collectionId": DIRECTORY}],
            "where": {
                "fieldFilter": {
                    "field": {"fieldPath": "keywords"},
                    "op": "ARRAY_CONTAINS",
                    "value": {"stringValue": keyword.strip().lower()},
                }
            },
            "limit": limit,
        })
        return [GreenProduct.from_dict(row.pop("_id"), row) for row in rows]

    async def get_receipt(self, user_id: str, receipt_id: str) -> Receipt | None:
        data = await self._get_document(USERS, user_id, RECEIPTS, receipt_id)
        if data is None:
            return None
        return Receipt.from_dict({**data, "id": data.get("id", receipt_id)})

    async def save_receipt(
        self, user_id: str, receipt: Receipt, entries: Sequence[LedgerEntry]
    ) -> None:
        user_root = f"{self.documents_root}/{USERS}/{user_id}"
        writes = [self._create_write(f"{user_root}/{RECEIPTS}/{receipt.id}", receipt.to_dict())]
        for entry in entries:
            collection = LEDGER_COLLECTIONS[entry.kind]
            writes.append(
                self._create_write(
                    f"{user_root}/{collection}/{entry.line_item.id}", entry.to_dict()
                )
            )

        response = await self._request(
            "POST", f"/{self.documents_root}:commit", json={"writes": writes}, retry=False
        )
        if response.status_code in (409, 412):
            raise ValidationError(
                f"Receipt {receipt.id!r} or one of its entries already exists",
                details={"receipt_id": receipt.id},
            )
        self._raise_for_error(response)
        logger.info("receipt_committed", user_id=user_id, receipt_id=receipt.id, writes=len(writes))

    @staticmethod
    def _create_write(name: str, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "update": {"name": name, "fields": encode_fields(data)},
            "currentDocument": {"exists": False},
        }

    async def list_ledger(self, user_id: str, kind: EntryKind) -> list[LedgerEntry]:
        rows = await self._run_query(
            {"from": [{"collectionId": LEDGER_COLLECTIONS[kind]}]},
            parent=f"{USERS}/{user_id}",
        )
        entries = []
        for row in rows:
            row.pop("_id")
            entries.append(entry_from_dict(row))
        return entries
