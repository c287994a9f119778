"""External valuation of line items into carbon and GITA fields."""

import json
from typing import Any, Protocol

import structlog

from kira_advisor.clients.base import LLMClient, parse_json_reply
from kira_advisor.models import CARBON_FIELDS, GITA_FIELDS, LineItem

logger = structlog.get_logger(__name__)

CARBON_PROMPT = """You are a carbon accountant for Malaysian SMEs using the GHG Protocol.
Given one purchased line item as JSON, estimate its emissions.

Reply with a single JSON object and nothing else:
{
  "scope": 1 | 2 | 3,
  "activityData": number (quantity in the emission factor's unit),
  "emissionFactor": number (kg CO2e per unit of activity),
  "gwp": number (global warming potential multiplier, 1 for CO2),
  "gef": number (grid emission factor in kg CO2e/kWh, 0 if not electricity),
  "co2eEmission": number (kg CO2e, never negative)
}

Use Scope 1 for fuel burned on site or in owned vehicles, Scope 2 for purchased
electricity, and Scope 3 for everything else. For Malaysian grid electricity use
the Peninsular grid emission factor unless the supplier indicates Sabah or Sarawak."""

GITA_PROMPT = """You are a Malaysian tax adviser specialising in the Green Investment
Tax Allowance (GITA) for green assets registered in the MyHijau directory.
Given one GITA-eligible purchased line item as JSON, classify it.

Reply with a single JSON object and nothing else:
{
  "tier": integer (GITA tier, 1 highest),
  "sector": string (e.g. "Renewable Energy", "Energy Efficiency"),
  "technology": string (e.g. "Solar PV", "LED Lighting"),
  "asset": string (short asset description),
  "gitaAllowance": number (allowance in RM, never negative)
}"""


class Valuator(Protocol):
    """Derives the variant-specific fields for a line item."""

    async def carbon_fields(self, line_item: LineItem) -> dict[str, Any]: ...

    async def gita_fields(self, line_item: LineItem) -> dict[str, Any]: ...


class LLMValuator:
    """Asks a language model for derived fields as a JSON object.

    Only the documented derived keys are kept from the reply. Client errors
    and unparseable replies surface as ExternalServiceError; nothing is
    retried here.
    """

    def __init__(self, client: LLMClient):
        self._client = client

    async def _ask(
        self, prompt: str, line_item: LineItem, keys: tuple[str, ...], service: str
    ) -> dict[str, Any]:
        response = await self._client.generate(
            system_prompt=prompt,
            messages=[{"role": "user", "content": json.dumps(line_item.to_dict())}],
        )
        data = parse_json_reply(response.content, service)
        derived = {key: data[key] for key in keys if key in data}
        logger.debug(
            "line_item_valued", service=service, line_item_id=line_item.id, keys=sorted(derived)
        )
        return derived

    async def carbon_fields(self, line_item: LineItem) -> dict[str, Any]:
        return await self._ask(CARBON_PROMPT, line_item, CARBON_FIELDS, "carbon_valuation")

    async def gita_fields(self, line_item: LineItem) -> dict[str, Any]:
        return await self._ask(GITA_PROMPT, line_item, GITA_FIELDS, "gita_valuation")
