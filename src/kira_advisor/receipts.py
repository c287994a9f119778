"""Receipt processing: extract, classify, then write everything at once."""

from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import structlog

from kira_advisor.classification import ClassificationEngine
from kira_advisor.errors import ExternalServiceError, KiraError, NotFoundError, ValidationError
from kira_advisor.extraction import ExtractionService
from kira_advisor.models import CarbonItem, GitaItem, LedgerEntry, Receipt
from kira_advisor.store import LedgerStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReceiptResult:
    """A stored receipt and the ledger entries derived from it."""

    receipt: Receipt
    entries: tuple[LedgerEntry, ...]

    @property
    def carbon_items(self) -> list[CarbonItem]:
        return [entry for entry in self.entries if isinstance(entry, CarbonItem)]

    @property
    def gita_items(self) -> list[GitaItem]:
        return [entry for entry in self.entries if isinstance(entry, GitaItem)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "receipt": self.receipt.to_dict(),
            "carbonItems": [item.to_dict() for item in self.carbon_items],
            "gitaItems": [item.to_dict() for item in self.gita_items],
        }


class ReceiptProcessor:
    """Turns a receipt image into a persisted receipt plus ledger entries.

    Line items are classified strictly in receipt order. Nothing is written
    until every classification has succeeded, and then the receipt and all
    its entries are saved in one store call.
    """

    def __init__(
        self,
        extractor: ExtractionService,
        engine: ClassificationEngine,
        store: LedgerStore,
    ):
        self._extractor = extractor
        self._engine = engine
        self._store = store

    async def _extract(self, image_bytes: bytes, receipt_id: str, image_url: str) -> Receipt:
        try:
            payload = await self._extractor.extract(image_bytes)
        except KiraError:
            raise
        except Exception as e:
            raise ExternalServiceError("extraction", str(e)) from e

        try:
            return Receipt.from_extraction(payload, receipt_id, image_url=image_url)
        except ValidationError as e:
            raise ExternalServiceError(
                "extraction", f"Malformed extraction result: {e.message}", details=e.details
            ) from e

    async def process(
        self, user_id: str, image_bytes: bytes, image_url: str = ""
    ) -> ReceiptResult:
        """Extract, classify, and store one receipt for ``user_id``."""
        if not user_id:
            raise ValidationError("userId is required")
        if not image_bytes:
            raise ValidationError("imageBytes is required")

        if await self._store.get_user_profile(user_id) is None:
            raise NotFoundError(f"User not found: {user_id}", details={"userId": user_id})

        receipt_id = str(uuid4())
        log = logger.bind(user_id=user_id, receipt_id=receipt_id)

        receipt = await self._extract(image_bytes, receipt_id, image_url)
        log.info("receipt_parsed", vendor=receipt.vendor, line_items=len(receipt.line_items))

        try:
            entries = await self._engine.classify_receipt(receipt)
        except KiraError as e:
            log.warning("receipt_classification_aborted", error=e.message)
            raise

        await self._store.save_receipt(user_id, receipt, entries)
        log.info("receipt_processed", entries=len(entries))
        return ReceiptResult(receipt=receipt, entries=tuple(entries))
