"""Tools module for the Kira advisor."""

from kira_advisor.tools.definitions import (
    ADVISOR_TOOLS,
    GET_INDUSTRY_BENCHMARK_TOOL,
    SEARCH_GREEN_DIRECTORY_TOOL,
    SIMULATE_INVESTMENT_TOOL,
    SIMULATE_TAX_IMPACT_TOOL,
)
from kira_advisor.tools.handlers import AdvisorToolHandlers, build_advisor_registry
from kira_advisor.tools.registry import Tool, ToolExecutionError, ToolRegistry

__all__ = [
    # Tool Definitions
    "ADVISOR_TOOLS",
    "SEARCH_GREEN_DIRECTORY_TOOL",
    "SIMULATE_TAX_IMPACT_TOOL",
    "SIMULATE_INVESTMENT_TOOL",
    "GET_INDUSTRY_BENCHMARK_TOOL",
    # Registry
    "Tool",
    "ToolRegistry",
    "ToolExecutionError",
    "AdvisorToolHandlers",
    "build_advisor_registry",
]
