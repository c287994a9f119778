"""Request-style entry points for hosts (HTTP handlers, callables, the CLI)."""

from typing import Any

import structlog

from kira_advisor.agent import AgentOrchestrator
from kira_advisor.errors import KiraError
from kira_advisor.receipts import ReceiptProcessor
from kira_advisor.runtime import get_runtime
from kira_advisor.schemas import ChatRequest, ReceiptRequest, parse_request

logger = structlog.get_logger(__name__)


async def process_receipt(
    payload: dict[str, Any], processor: ReceiptProcessor | None = None
) -> dict[str, Any]:
    """Handle ``{userId, imageBytes}``.

    Returns the stored receipt with its carbon and GITA entries, or a
    structured ``{"error": {...}}`` object.
    """
    try:
        request = parse_request(ReceiptRequest, payload)
        processor = processor or get_runtime().receipts
        result = await processor.process(request.user_id, request.image_bytes)
    except KiraError as e:
        logger.warning("process_receipt_failed", code=e.code, error=e.message)
        return e.to_dict()
    return result.to_dict()


async def chat(
    payload: dict[str, Any],
    agent: AgentOrchestrator | None = None,
    include_tools: bool = False,
) -> dict[str, Any]:
    """Handle ``{userId, message, attachmentId?}`` and return ``{reply}``."""
    try:
        request = parse_request(ChatRequest, payload)
        agent = agent or get_runtime().agent
        reply = await agent.chat(
            request.user_id, request.message, attachment_id=request.attachment_id
        )
    except KiraError as e:
        logger.warning("chat_failed", code=e.code, error=e.message)
        return e.to_dict()
    return reply.to_dict(include_tools=include_tools)


def health() -> dict[str, str]:
    """Static liveness check."""
    return {"status": "ok"}
