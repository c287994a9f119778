"""Tests for the classification engine and LLM valuator."""

import json
from unittest.mock import AsyncMock

import pytest

from conftest import make_response
from kira_advisor.classification import ClassificationEngine
from kira_advisor.errors import ExternalServiceError, ValidationError
from kira_advisor.models import CarbonItem, GitaItem, LineItem, Receipt
from kira_advisor.valuation import LLMValuator

CARBON = {
    "scope": 3,
    "activityData": 10,
    "emissionFactor": 2.5,
    "gwp": 1,
    "gef": 0,
    "co2eEmission": 25.0,
}
GITA = {
    "tier": 1,
    "sector": "Renewable Energy",
    "technology": "Solar PV",
    "asset": "Solar panels",
    "gitaAllowance": 15500.0,
}


def make_valuator(carbon=None, gita=None):
    valuator = AsyncMock()
    valuator.carbon_fields = AsyncMock(return_value=dict(carbon or CARBON))
    valuator.gita_fields = AsyncMock(return_value=dict(gita or GITA))
    return valuator


def make_receipt(*eligibility: bool) -> Receipt:
    return Receipt.from_extraction(
        {
            "vendor": "SunCo",
            "date": "2025-03-01",
            "lineItems": [
                {"name": f"Item {i}", "quantity": 1, "unit": "unit", "price": 10.0,
                 "isGitaEligible": eligible}
                for i, eligible in enumerate(eligibility)
            ],
        },
        "r-1",
    )


class TestClassificationEngine:
    """Tests for ClassificationEngine."""

    @pytest.mark.asyncio
    async def test_classify_merges_derived_fields(self, line_item_data):
        engine = ClassificationEngine(make_valuator())
        line_item = LineItem.from_dict(line_item_data)

        item = await engine.classify(line_item)

        assert isinstance(item, CarbonItem)
        assert item.line_item == line_item
        assert item.co2e_emission == 25.0

    @pytest.mark.asyncio
    async def test_classify_is_idempotent_for_same_valuation(self, line_item_data):
        engine = ClassificationEngine(make_valuator())
        line_item = LineItem.from_dict(line_item_data)

        first = await engine.classify(line_item)
        second = await engine.classify(line_item)

        assert first == second

    @pytest.mark.asyncio
    async def test_classify_gita_rejects_ineligible(self, line_item_data):
        valuator = make_valuator()
        engine = ClassificationEngine(valuator)
        line_item = LineItem.from_dict({**line_item_data, "isGitaEligible": False})

        with pytest.raises(ValidationError):
            await engine.classify_gita(line_item)

        valuator.gita_fields.assert_not_called()

    @pytest.mark.asyncio
    async def test_gita_entry_only_for_eligible_items(self):
        engine = ClassificationEngine(make_valuator())
        receipt = make_receipt(True, False, True)

        entries = await engine.classify_receipt(receipt)

        kinds = [(type(e).__name__, e.line_item.id) for e in entries]
        assert kinds == [
            ("CarbonItem", "r-1-0"),
            ("GitaItem", "r-1-0"),
            ("CarbonItem", "r-1-1"),
            ("CarbonItem", "r-1-2"),
            ("GitaItem", "r-1-2"),
        ]

    @pytest.mark.asyncio
    async def test_line_items_classified_in_order(self):
        seen: list[str] = []

        async def carbon_fields(line_item):
            seen.append(line_item.id)
            return dict(CARBON)

        valuator = make_valuator()
        valuator.carbon_fields = carbon_fields
        engine = ClassificationEngine(valuator)

        await engine.classify_receipt(make_receipt(False, False, False))

        assert seen == ["r-1-0", "r-1-1", "r-1-2"]

    @pytest.mark.asyncio
    async def test_valuation_failure_stops_the_receipt(self):
        valuator = make_valuator()
        valuator.carbon_fields.side_effect = [dict(CARBON), RuntimeError("quota"), dict(CARBON)]
        engine = ClassificationEngine(valuator)

        with pytest.raises(ExternalServiceError) as exc_info:
            await engine.classify_receipt(make_receipt(False, False, False))

        assert exc_info.value.service == "valuation"
        assert valuator.carbon_fields.await_count == 2

    @pytest.mark.asyncio
    async def test_malformed_valuation_is_external_error(self, line_item_data):
        engine = ClassificationEngine(make_valuator(carbon={**CARBON, "scope": 7}))

        with pytest.raises(ExternalServiceError):
            await engine.classify(LineItem.from_dict(line_item_data))


class TestLLMValuator:
    """Tests for LLMValuator."""

    @pytest.mark.asyncio
    async def test_keeps_only_documented_keys(self, mock_llm_client, line_item_data):
        reply = {**CARBON, "notes": "ignored", "name": "hijack"}
        mock_llm_client.generate.return_value = make_response(json.dumps(reply))
        valuator = LLMValuator(mock_llm_client)

        derived = await valuator.carbon_fields(LineItem.from_dict(line_item_data))

        assert derived == CARBON
        call = mock_llm_client.generate.call_args
        assert json.loads(call.kwargs["messages"][0]["content"])["id"] == "li-1"

    @pytest.mark.asyncio
    async def test_fenced_reply_is_parsed(self, mock_llm_client, line_item_data):
        mock_llm_client.generate.return_value = make_response(
            "```json\n" + json.dumps(GITA) + "\n```"
        )
        valuator = LLMValuator(mock_llm_client)

        derived = await valuator.gita_fields(LineItem.from_dict(line_item_data))

        assert derived == GITA

    @pytest.mark.asyncio
    async def test_non_json_reply_raises(self, mock_llm_client, line_item_data):
        mock_llm_client.generate.return_value = make_response("I think it's scope 2")
        valuator = LLMValuator(mock_llm_client)

        with pytest.raises(ExternalServiceError):
            await valuator.carbon_fields(LineItem.from_dict(line_item_data))

    @pytest.mark.asyncio
    async def test_end_to_end_with_engine(self, mock_llm_client, line_item_data):
        mock_llm_client.generate.side_effect = [
            make_response(json.dumps(CARBON)),
            make_response(json.dumps(GITA)),
        ]
        engine = ClassificationEngine(LLMValuator(mock_llm_client))

        entries = await engine.classify_line_item(LineItem.from_dict(line_item_data))

        assert isinstance(entries[0], CarbonItem)
        assert isinstance(entries[1], GitaItem)
        assert entries[1].gita_allowance == 15500.0
