"""Pytest configuration and fixtures."""

import os
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("GOOGLE_API_KEY", "test-key")
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-test")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

from kira_advisor.clients.base import LLMResponse  # noqa: E402
from kira_advisor.store import InMemoryLedgerStore  # noqa: E402


def make_response(
    content: str = "", tool_calls: list[dict[str, Any]] | None = None
) -> LLMResponse:
    """Build a normalized LLM response."""
    return LLMResponse(
        content=content,
        tool_calls=tool_calls or [],
        stop_reason="tool_use" if tool_calls else "end_turn",
        usage={"input_tokens": 10, "output_tokens": 5},
    )


@pytest.fixture
def seed_data():
    """Reference documents shaped like the store's collections."""
    return {
        "users": {
            "user-1": {
                "industry": "Manufacturing",
                "annualRevenue": 200000,
                "totalEmissions": 50,
                "gitaTaxCreditBalance": 20000,
            },
            "legacy-user": {
                "industry": "Retail",
                "annualRevenue": 100000,
                "totalcarbonemission": 10,
            },
            "no-industry": {"annualRevenue": 50000, "totalEmissions": 5},
        },
        "greenAssets": {
            "solar-10kw": {
                "name": "10kW Rooftop Solar",
                "capexRM": 15500,
                "annualEnergyOffsetPercent": 0.3,
                "annualMaintenanceRM": 0,
                "gitaEligible": True,
                "lifetimeYears": 20,
            },
            "costly-chiller": {
                "name": "Chiller",
                "capexRM": 50000,
                "annualEnergyOffsetPercent": 0.01,
                "annualMaintenanceRM": 5000,
                "gitaEligible": False,
            },
        },
        "industryStats": {
            "Manufacturing": {"averageIntensity": 0.0002},
            "Retail": {"averageIntensity": 0.5},
        },
        "directory": {
            f"prod-{i}": {
                "name": f"Solar Panel {i}",
                "manufacturer": f"Maker {i}",
                "certExpiry": "2027-12-31",
                "keywords": ["solar panel", "solar"],
            }
            for i in range(7)
        }
        | {
            "led-1": {"name": "LED Tube", "keywords": ["LED Lighting"]},
        },
        "receipts": {
            "user-1": {
                "rcpt-1": {
                    "vendor": "TNB",
                    "date": "2025-01-31",
                    "total": 1200.0,
                    "imageUrl": "",
                    "createdAt": "2025-02-01T00:00:00+00:00",
                    "lineItems": [
                        {
                            "id": "rcpt-1-0",
                            "name": "Electricity",
                            "supplier": "TNB",
                            "quantity": 2400,
                            "unit": "kWh",
                            "price": 1200.0,
                            "currency": "MYR",
                            "isGitaEligible": False,
                            "date": "2025-01-31",
                        }
                    ],
                }
            }
        },
    }


@pytest.fixture
def store(seed_data):
    """In-memory ledger store seeded with reference data."""
    return InMemoryLedgerStore(
        users=seed_data["users"],
        green_assets=seed_data["greenAssets"],
        industry_stats=seed_data["industryStats"],
        directory=seed_data["directory"],
        receipts=seed_data["receipts"],
    )


@pytest.fixture
def mock_llm_client():
    """An LLM client whose replies are scripted per test."""
    client = AsyncMock()
    client.generate = AsyncMock(return_value=make_response("Hello from Kira"))
    client.generate_from_image = AsyncMock(return_value="{}")
    return client


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def line_item_data():
    return {
        "id": "li-1",
        "name": "Solar PV Panel",
        "supplier": "SunCo",
        "quantity": 10,
        "unit": "unit",
        "price": 15500.0,
        "currency": "MYR",
        "isGitaEligible": True,
        "date": "2025-03-01",
    }
