"""Tests for receipt processing and the request entry points."""

import base64
from unittest.mock import AsyncMock

import pytest

from kira_advisor import api
from kira_advisor.agent import AgentOrchestrator
from kira_advisor.classification import ClassificationEngine
from kira_advisor.errors import ExternalServiceError, NotFoundError
from kira_advisor.models import EntryKind
from kira_advisor.receipts import ReceiptProcessor
from kira_advisor.tools import build_advisor_registry

EXTRACTED = {
    "vendor": "SunCo Solar",
    "date": "2025-03-01",
    "total": 16700.0,
    "lineItems": [
        {"name": "Solar PV Panel", "quantity": 10, "unit": "unit", "price": 15500.0,
         "isGitaEligible": True},
        {"name": "Installation", "quantity": 1, "unit": "job", "price": 1200.0,
         "isGitaEligible": False},
    ],
}
CARBON = {"scope": 3, "activityData": 10, "emissionFactor": 40.0, "gwp": 1, "gef": 0,
          "co2eEmission": 400.0}
GITA = {"tier": 1, "sector": "Renewable Energy", "technology": "Solar PV",
        "asset": "Solar panels", "gitaAllowance": 15500.0}


@pytest.fixture
def extractor():
    service = AsyncMock()
    service.extract = AsyncMock(return_value=dict(EXTRACTED))
    return service


@pytest.fixture
def valuator():
    valuator = AsyncMock()
    valuator.carbon_fields = AsyncMock(return_value=dict(CARBON))
    valuator.gita_fields = AsyncMock(return_value=dict(GITA))
    return valuator


@pytest.fixture
def processor(extractor, valuator, store):
    return ReceiptProcessor(extractor, ClassificationEngine(valuator), store)


class TestReceiptProcessor:
    """Tests for ReceiptProcessor.process."""

    @pytest.mark.asyncio
    async def test_receipt_and_entries_saved(self, processor, store):
        result = await processor.process("user-1", b"\xff\xd8\xffimage")

        assert len(result.carbon_items) == 2
        assert len(result.gita_items) == 1
        stored = await store.get_receipt("user-1", result.receipt.id)
        assert stored is not None
        assert stored.vendor == "SunCo Solar"
        assert len(await store.list_ledger("user-1", EntryKind.CARBON)) == 2
        assert len(await store.list_ledger("user-1", EntryKind.GITA)) == 1

    @pytest.mark.asyncio
    async def test_result_to_dict(self, processor):
        result = (await processor.process("user-1", b"img")).to_dict()

        assert result["receipt"]["vendor"] == "SunCo Solar"
        assert [item["kind"] for item in result["carbonItems"]] == ["carbon", "carbon"]
        assert result["gitaItems"][0]["gitaAllowance"] == 15500.0
        assert result["gitaItems"][0]["supplier"] == "SunCo Solar"

    @pytest.mark.asyncio
    async def test_nothing_saved_when_a_later_item_fails(self, processor, valuator, store):
        valuator.carbon_fields.side_effect = [dict(CARBON), RuntimeError("quota exceeded")]

        with pytest.raises(ExternalServiceError):
            await processor.process("user-1", b"img")

        assert await store.list_ledger("user-1", EntryKind.CARBON) == []
        assert await store.list_ledger("user-1", EntryKind.GITA) == []

    @pytest.mark.asyncio
    async def test_malformed_extraction(self, processor, extractor):
        extractor.extract.return_value = {"vendor": "X", "lineItems": [{"price": 1}]}

        with pytest.raises(ExternalServiceError) as exc_info:
            await processor.process("user-1", b"img")

        assert exc_info.value.service == "extraction"

    @pytest.mark.asyncio
    async def test_extractor_crash_is_wrapped(self, processor, extractor):
        extractor.extract.side_effect = ConnectionError("reset")

        with pytest.raises(ExternalServiceError):
            await processor.process("user-1", b"img")

    @pytest.mark.asyncio
    async def test_receipts_with_overlapping_item_ids_both_saved(
        self, processor, extractor, store
    ):
        diesel = {"id": "1", "name": "Diesel", "quantity": 40, "unit": "L", "price": 120.0}
        extractor.extract.side_effect = [
            {"vendor": "Petronas", "date": "2025-04-01", "lineItems": [dict(diesel)]},
            {"vendor": "Shell", "date": "2025-04-08", "lineItems": [dict(diesel)]},
        ]

        first = await processor.process("user-1", b"img")
        second = await processor.process("user-1", b"img")

        assert first.receipt.line_items[0].id == f"{first.receipt.id}-1"
        assert second.receipt.line_items[0].id == f"{second.receipt.id}-1"
        ledger = await store.list_ledger("user-1", EntryKind.CARBON)
        assert sorted(entry.line_item.id for entry in ledger) == sorted(
            [f"{first.receipt.id}-1", f"{second.receipt.id}-1"]
        )

    @pytest.mark.asyncio
    async def test_text_false_eligibility_gets_no_gita_entry(
        self, processor, extractor, valuator
    ):
        extractor.extract.return_value = {
            "vendor": "SunCo Solar",
            "date": "2025-03-01",
            "lineItems": [
                {"name": "Cable", "quantity": 1, "unit": "unit", "price": 50.0,
                 "isGitaEligible": "false"},
            ],
        }

        result = await processor.process("user-1", b"img")

        assert result.gita_items == []
        valuator.gita_fields.assert_not_called()

    @pytest.mark.asyncio
    async def test_unparseable_eligibility_rejects_extraction(
        self, processor, extractor, store
    ):
        extractor.extract.return_value = {
            "vendor": "SunCo Solar",
            "date": "2025-03-01",
            "lineItems": [
                {"name": "Panel", "quantity": 1, "unit": "unit", "price": 50.0,
                 "isGitaEligible": "maybe"},
            ],
        }

        with pytest.raises(ExternalServiceError) as exc_info:
            await processor.process("user-1", b"img")

        assert exc_info.value.service == "extraction"
        assert await store.list_ledger("user-1", EntryKind.CARBON) == []

    @pytest.mark.asyncio
    async def test_unknown_user_rejected_before_extraction(self, processor, extractor):
        with pytest.raises(NotFoundError):
            await processor.process("ghost", b"img")

        extractor.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_line_items_abort_the_write(self, processor, extractor, store):
        extractor.extract.return_value = {
            "vendor": "X",
            "date": "2025-01-01",
            "lineItems": [
                {"id": "dup", "name": "A", "quantity": 1, "price": 1},
                {"id": "dup", "name": "B", "quantity": 1, "price": 1},
            ],
        }

        result = await api.process_receipt(
            {"userId": "user-1", "imageBytes": b"img"}, processor=processor
        )

        assert result["error"]["code"] == "validation_error"
        assert await store.list_ledger("user-1", EntryKind.CARBON) == []


class TestProcessReceiptEntryPoint:
    """Tests for api.process_receipt."""

    @pytest.mark.asyncio
    async def test_accepts_base64_image(self, processor, extractor):
        payload = {"userId": "user-1", "imageBytes": base64.b64encode(b"png").decode()}

        result = await api.process_receipt(payload, processor=processor)

        assert "receipt" in result
        extractor.extract.assert_awaited_once_with(b"png")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"imageBytes": "aW1n"},
            {"userId": "user-1"},
            {"userId": "", "imageBytes": "aW1n"},
            {"userId": "user-1", "imageBytes": "***not base64***"},
            ["not", "an", "object"],
        ],
    )
    async def test_invalid_requests(self, processor, extractor, payload):
        result = await api.process_receipt(payload, processor=processor)

        assert result["error"]["code"] == "validation_error"
        extractor.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_user_is_not_found(self, processor):
        result = await api.process_receipt(
            {"userId": "ghost", "imageBytes": b"img"}, processor=processor
        )

        assert result["error"]["code"] == "not_found"
        assert result["error"]["details"] == {"userId": "ghost"}

    @pytest.mark.asyncio
    async def test_downstream_failure_is_structured(self, processor, valuator):
        valuator.gita_fields.side_effect = ExternalServiceError("gita_valuation", "timeout")

        result = await api.process_receipt(
            {"userId": "user-1", "imageBytes": b"img"}, processor=processor
        )

        assert result == {
            "error": {
                "code": "external_service_error",
                "message": "gita_valuation: timeout",
                "details": None,
            }
        }


class TestChatEntryPoint:
    """Tests for api.chat and api.health."""

    @pytest.fixture
    def agent(self, mock_llm_client, store):
        return AgentOrchestrator(mock_llm_client, build_advisor_registry(store), store)

    @pytest.mark.asyncio
    async def test_chat_reply(self, agent):
        result = await api.chat({"userId": "user-1", "message": "Hi"}, agent=agent)

        assert result == {"reply": "Hello from Kira"}

    @pytest.mark.asyncio
    async def test_chat_with_tool_list(self, agent):
        result = await api.chat(
            {"userId": "user-1", "message": "Hi", "attachmentId": "rcpt-1"},
            agent=agent,
            include_tools=True,
        )

        assert result == {"reply": "Hello from Kira", "toolCallsUsed": []}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload", [{"userId": "user-1"}, {"message": "Hi"}, {"userId": "u", "message": "  "}]
    )
    async def test_chat_validation(self, agent, mock_llm_client, payload):
        result = await api.chat(payload, agent=agent)

        assert result["error"]["code"] == "validation_error"
        mock_llm_client.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_chat_model_failure(self, agent, mock_llm_client):
        mock_llm_client.generate.side_effect = ExternalServiceError("gemini", "503")

        result = await api.chat({"userId": "user-1", "message": "Hi"}, agent=agent)

        assert result["error"]["code"] == "external_service_error"

    def test_health(self):
        assert api.health() == {"status": "ok"}
