"""Kira - conversational carbon and GITA tax advisor for small businesses."""

__version__ = "0.1.0"

from kira_advisor.agent import AgentOrchestrator, ChatPhase, ChatReply
from kira_advisor.classification import ClassificationEngine
from kira_advisor.config import configure_logging, get_settings
from kira_advisor.errors import (
    ExternalServiceError,
    IncompleteDataError,
    KiraError,
    NotFoundError,
    ValidationError,
)
from kira_advisor.models import CarbonItem, GitaItem, LineItem, Receipt, merge_fields
from kira_advisor.receipts import ReceiptProcessor, ReceiptResult
from kira_advisor.runtime import get_agent, get_runtime
from kira_advisor.tools import ToolRegistry, build_advisor_registry

__all__ = [
    # Version
    "__version__",
    # Agent
    "AgentOrchestrator",
    "ChatPhase",
    "ChatReply",
    "get_agent",
    "get_runtime",
    # Ledger
    "ClassificationEngine",
    "ReceiptProcessor",
    "ReceiptResult",
    "LineItem",
    "CarbonItem",
    "GitaItem",
    "Receipt",
    "merge_fields",
    # Tools
    "ToolRegistry",
    "build_advisor_registry",
    # Errors
    "KiraError",
    "ValidationError",
    "NotFoundError",
    "IncompleteDataError",
    "ExternalServiceError",
    # Config
    "get_settings",
    "configure_logging",
]
