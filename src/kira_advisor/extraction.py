"""Receipt extraction from images using a vision-capable model."""

from typing import Any, Protocol

import structlog

from kira_advisor.clients.base import LLMClient, parse_json_reply
from kira_advisor.errors import ExternalServiceError

logger = structlog.get_logger(__name__)

EXTRACTION_PROMPT = """This image is a receipt, invoice, or utility bill from a Malaysian business.
Extract it as a single JSON object and reply with nothing else:
{
  "vendor": string,
  "date": "YYYY-MM-DD",
  "total": number,
  "lineItems": [
    {
      "name": string,
      "supplier": string,
      "quantity": number,
      "unit": string (e.g. "kWh", "L", "unit"),
      "price": number (line total),
      "currency": "MYR" unless another currency is printed,
      "isGitaEligible": boolean (true only for green assets such as solar PV,
                        LED retrofits, heat pumps, or EV chargers)
    }
  ]
}
Use 0 for unreadable numbers and never invent line items that are not printed."""

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF8", "image/gif"),
)


def guess_image_mime(image_bytes: bytes) -> str:
    """Guess an image MIME type from its leading bytes; JPEG when unknown."""
    for signature, mime_type in _SIGNATURES:
        if image_bytes.startswith(signature):
            return mime_type
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


class ExtractionService(Protocol):
    """Turns a receipt image into a receipt payload with a line-item list."""

    async def extract(self, image_bytes: bytes) -> dict[str, Any]: ...


class VisionExtractionService:
    """Extracts receipts with a multimodal LLM client."""

    def __init__(self, client: LLMClient):
        self._client = client

    async def extract(self, image_bytes: bytes) -> dict[str, Any]:
        mime_type = guess_image_mime(image_bytes)
        logger.info("extracting_receipt", mime_type=mime_type, image_bytes=len(image_bytes))

        text = await self._client.generate_from_image(
            EXTRACTION_PROMPT, image_bytes, mime_type=mime_type
        )
        data = parse_json_reply(text, "extraction")

        line_items = data.get("lineItems")
        if not isinstance(line_items, list):
            raise ExternalServiceError(
                "extraction", "Extraction result has no lineItems list", details=data
            )

        logger.info("receipt_extracted", vendor=data.get("vendor"), line_items=len(line_items))
        return data
