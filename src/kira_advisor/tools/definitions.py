"""Tool definitions for LLM function calling.

Each tool carries a name, a description telling the model when to use it,
an input JSON schema sent to the model, and an output JSON schema describing
what the handler returns.
"""

from typing import Any

SEARCH_GREEN_DIRECTORY_TOOL: dict[str, Any] = {
    "name": "searchGreenDirectory",
    "description": (
        "Searches the MyHijau directory for certified green products or services. "
        "Use when the user asks for eco-friendly alternatives, or when an attached "
        "receipt has line items (electricity, fuel, packaging) that could be replaced "
        "by greener options."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "query": {
                "type": "string",
                "description": 'Single search keyword, e.g. "solar panel", "led lighting"',
            },
        },
        "required": ["query"],
    },
    "output_schema": {
        "type": "object",
        "properties": {
            "results": {
                "type": "array",
                "maxItems": 5,
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "manufacturer": {"type": "string"},
                        "certExpiry": {"type": "string"},
                    },
                    "required": ["name", "manufacturer", "certExpiry"],
                },
            },
        },
        "required": ["results"],
    },
}

SIMULATE_TAX_IMPACT_TOOL: dict[str, Any] = {
    "name": "simulateTaxImpact",
    "description": (
        "Forecasts the user's carbon tax liability at a proposed tax rate and how much "
        "their GITA credit balance offsets it. Use when the user asks about carbon tax "
        "projections or exposure."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "userId": {"type": "string", "description": "The user's ID"},
            "proposedTaxRate": {
                "type": "number",
                "description": "Tax rate in RM per tonne CO2e (e.g. 35, 100)",
            },
        },
        "required": ["userId", "proposedTaxRate"],
    },
    "output_schema": {
        "type": "object",
        "properties": {
            "grossLiability": {"type": "number"},
            "netLiabilityAfterGITA": {"type": "number"},
            "savingsFromGITA": {"type": "number"},
        },
        "required": ["grossLiability", "netLiabilityAfterGITA", "savingsFromGITA"],
    },
}

SIMULATE_INVESTMENT_TOOL: dict[str, Any] = {
    "name": "simulateInvestment",
    "description": (
        "Calculates payback period and lifetime ROI for a green asset from the green "
        "asset catalog. Use when the user asks whether solar panels, EVs, or other "
        "green investments are worth it."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "assetId": {
                "type": "string",
                "description": "ID of the green asset in the catalog",
            },
            "monthlyEnergyUsageKwh": {
                "type": "number",
                "description": "Estimated monthly energy usage in kWh. Use 5000 if unknown.",
            },
        },
        "required": ["assetId", "monthlyEnergyUsageKwh"],
    },
    "output_schema": {
        "type": "object",
        "properties": {
            "paybackPeriodYears": {"type": "number"},
            "annualSavingsRM": {"type": "number"},
            "taxSavingsRM": {"type": "number"},
            "lifetimeROI": {"type": "number"},
        },
        "required": ["paybackPeriodYears", "annualSavingsRM", "taxSavingsRM", "lifetimeROI"],
    },
}

GET_INDUSTRY_BENCHMARK_TOOL: dict[str, Any] = {
    "name": "getIndustryBenchmark",
    "description": (
        "Compares the user's carbon intensity with their industry average. Use ONLY "
        "when the user asks how they compare to competitors or their sector."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "userId": {"type": "string", "description": "The user's ID"},
        },
        "required": ["userId"],
    },
    "output_schema": {
        "type": "object",
        "properties": {
            "userIntensity": {"type": "number"},
            "industryAverage": {"type": "number"},
            "performance": {"type": "string"},
        },
        "required": ["userIntensity", "industryAverage", "performance"],
    },
}

ADVISOR_TOOLS: list[dict[str, Any]] = [
    SEARCH_GREEN_DIRECTORY_TOOL,
    SIMULATE_TAX_IMPACT_TOOL,
    SIMULATE_INVESTMENT_TOOL,
    GET_INDUSTRY_BENCHMARK_TOOL,
]
