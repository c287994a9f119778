"""Classification of raw line items into carbon and GITA ledger entries."""

from typing import Any

import structlog

from kira_advisor.errors import ExternalServiceError, KiraError, ValidationError
from kira_advisor.models import (
    CarbonItem,
    GitaItem,
    LedgerEntry,
    LineItem,
    Receipt,
    merge_fields,
)
from kira_advisor.valuation import Valuator

logger = structlog.get_logger(__name__)


class ClassificationEngine:
    """Turns line items into ledger entries via an external valuator.

    Each entry is the line item's own fields with the valuator's derived
    fields merged on top (derived values win on collision). A failed or
    malformed valuation aborts that line item and propagates; there is no
    retry at this level.
    """

    def __init__(self, valuator: Valuator):
        self._valuator = valuator

    async def _derive(self, line_item: LineItem, kind: str) -> dict[str, Any]:
        try:
            if kind == "carbon":
                return await self._valuator.carbon_fields(line_item)
            return await self._valuator.gita_fields(line_item)
        except KiraError:
            logger.warning("classification_failed", kind=kind, line_item_id=line_item.id)
            raise
        except Exception as e:
            logger.warning(
                "classification_failed", kind=kind, line_item_id=line_item.id, error=str(e)
            )
            raise ExternalServiceError("valuation", str(e)) from e

    async def classify(self, line_item: LineItem) -> CarbonItem:
        """Derive the carbon ledger entry for a line item."""
        derived = await self._derive(line_item, "carbon")
        try:
            return CarbonItem.from_record(merge_fields(line_item.to_dict(), derived))
        except ValidationError as e:
            raise ExternalServiceError(
                "valuation",
                f"Invalid carbon fields for line item {line_item.id!r}: {e.message}",
                details=e.details,
            ) from e

    async def classify_gita(self, line_item: LineItem) -> GitaItem:
        """Derive the GITA ledger entry for an eligible line item."""
        if not line_item.is_gita_eligible:
            raise ValidationError(
                f"Line item {line_item.id!r} is not GITA-eligible",
                details={"line_item_id": line_item.id},
            )
        derived = await self._derive(line_item, "gita")
        try:
            return GitaItem.from_record(merge_fields(line_item.to_dict(), derived))
        except ValidationError as e:
            raise ExternalServiceError(
                "valuation",
                f"Invalid GITA fields for line item {line_item.id!r}: {e.message}",
                details=e.details,
            ) from e

    async def classify_line_item(self, line_item: LineItem) -> list[LedgerEntry]:
        """Return the carbon entry, followed by the GITA entry when eligible."""
        entries: list[LedgerEntry] = [await self.classify(line_item)]
        if line_item.is_gita_eligible:
            entries.append(await self.classify_gita(line_item))
        return entries

    async def classify_receipt(self, receipt: Receipt) -> list[LedgerEntry]:
        """Classify every line item of a receipt, one at a time, in order."""
        entries: list[LedgerEntry] = []
        for line_item in receipt.line_items:
            entries.extend(await self.classify_line_item(line_item))
        logger.info(
            "receipt_classified",
            receipt_id=receipt.id,
            line_items=len(receipt.line_items),
            entries=len(entries),
        )
        return entries
