"""Read-only tool handlers over the ledger store and simulations."""

from typing import Any

import structlog

from kira_advisor.errors import IncompleteDataError, NotFoundError, ValidationError
from kira_advisor.simulation import (
    benchmark_industry,
    forecast_tax_impact,
    simulate_investment,
)
from kira_advisor.store import DIRECTORY_SEARCH_LIMIT, LedgerStore
from kira_advisor.tools.definitions import (
    GET_INDUSTRY_BENCHMARK_TOOL,
    SEARCH_GREEN_DIRECTORY_TOOL,
    SIMULATE_INVESTMENT_TOOL,
    SIMULATE_TAX_IMPACT_TOOL,
)
from kira_advisor.tools.registry import ToolRegistry

logger = structlog.get_logger(__name__)


def _arg(arguments: dict[str, Any], key: str) -> Any:
    value = arguments.get(key)
    if value is None or value == "":
        raise ValidationError(f"Missing required argument: {key}", details={"argument": key})
    return value


def _number_arg(arguments: dict[str, Any], key: str) -> float:
    value = _arg(arguments, key)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"Argument {key} must be a number, got {value!r}", details={"argument": key}
        ) from e


class AdvisorToolHandlers:
    """Handlers for the four advisor tools. None of them write to the store."""

    def __init__(self, store: LedgerStore):
        self.store = store

    async def search_green_directory(self, arguments: dict[str, Any]) -> dict[str, Any]:
        query = str(arguments.get("query") or "").strip()
        if not query:
            return {"results": []}
        products = await self.store.search_green_directory(query, limit=DIRECTORY_SEARCH_LIMIT)
        return {"results": [product.to_dict() for product in products[:DIRECTORY_SEARCH_LIMIT]]}

    async def simulate_tax_impact(self, arguments: dict[str, Any]) -> dict[str, Any]:
        user_id = str(_arg(arguments, "userId"))
        rate = _number_arg(arguments, "proposedTaxRate")

        profile = await self.store.get_user_profile(user_id)
        if profile is None:
            raise NotFoundError(f"User not found: {user_id}", details={"userId": user_id})

        return forecast_tax_impact(
            proposed_tax_rate=rate,
            annual_emissions=profile.total_emissions,
            gita_credit_balance=profile.gita_tax_credit_balance,
        ).to_dict()

    async def simulate_investment(self, arguments: dict[str, Any]) -> dict[str, Any]:
        asset_id = str(_arg(arguments, "assetId"))
        monthly_kwh = (
            _number_arg(arguments, "monthlyEnergyUsageKwh")
            if arguments.get("monthlyEnergyUsageKwh") is not None
            else None
        )

        asset = await self.store.get_green_asset(asset_id)
        if asset is None:
            raise NotFoundError(
                f"Asset not found in ROI database: {asset_id}", details={"assetId": asset_id}
            )

        return simulate_investment(asset, monthly_kwh).to_dict()

    async def get_industry_benchmark(self, arguments: dict[str, Any]) -> dict[str, Any]:
        user_id = str(_arg(arguments, "userId"))

        profile = await self.store.get_user_profile(user_id)
        if profile is None:
            raise NotFoundError(f"User not found: {user_id}", details={"userId": user_id})
        if not profile.industry:
            raise IncompleteDataError(
                "User data incomplete: industry is not set", details={"userId": user_id}
            )

        stats = await self.store.get_industry_stats(profile.industry)
        if stats is None:
            logger.debug("industry_stats_missing", industry=profile.industry)

        return benchmark_industry(
            total_emissions=profile.total_emissions,
            annual_revenue=profile.annual_revenue,
            average_intensity=stats.average_intensity if stats else None,
        ).to_dict()


def build_advisor_registry(store: LedgerStore) -> ToolRegistry:
    """Create a registry with all four advisor tools bound to ``store``."""
    handlers = AdvisorToolHandlers(store)
    registry = ToolRegistry()
    registry.register(SEARCH_GREEN_DIRECTORY_TOOL, handlers.search_green_directory)
    registry.register(SIMULATE_TAX_IMPACT_TOOL, handlers.simulate_tax_impact)
    registry.register(SIMULATE_INVESTMENT_TOOL, handlers.simulate_investment)
    registry.register(GET_INDUSTRY_BENCHMARK_TOOL, handlers.get_industry_benchmark)
    return registry
