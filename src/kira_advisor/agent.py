"""Kira, the carbon and tax advisor agent.

A chat turn runs through a fixed sequence of phases:

    IDLE -> CONTEXT_ASSEMBLY -> PROMPT_CONSTRUCTION -> MODEL_INVOCATION
         -> RESPONSE_ASSEMBLY -> DONE

with ERROR as the terminal phase on failure. Tool calling is bounded to a
single round: the first completion may request any number of tools, all of
them run concurrently, and the follow-up completion's text is final. Tool
requests in the follow-up are discarded.
"""

import asyncio
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from kira_advisor.clients.base import LLMClient
from kira_advisor.config import get_settings
from kira_advisor.errors import KiraError
from kira_advisor.models import Receipt, UserProfile
from kira_advisor.store import LedgerStore
from kira_advisor.tools.registry import ToolExecutionError, ToolRegistry

logger = structlog.get_logger(__name__)

GUEST_PROFILE = "Guest User"
NO_ATTACHMENT = "No specific receipt attached."
ATTACHMENT_NOT_FOUND = "[System] User selected a receipt, but ID was not found."
ATTACHMENT_ERROR = "[System] Error retrieving receipt details."
EMPTY_REPLY = (
    "Sorry, I couldn't put together an answer this time. "
    "Could you rephrase your question?"
)

KIRA_SYSTEM_PROMPT = """You are Kira, an AI Carbon Consultant helping Malaysian SMEs cut
carbon tax liability and make the most of GITA (Green Investment Tax Allowance)
incentives.

-- USER PROFILE --
User ID: {user_id}
{profile}

-- ACTIVE CONTEXT --
{attachment}

-- INSTRUCTIONS --
1. Answer the user's query: "{message}"
2. When a tool needs a userId, pass "{user_id}".
3. If a receipt is attached and the user asks how to reduce it, look at its line
   items, pick keywords such as "electricity", "fuel", or "packaging", and use
   searchGreenDirectory to find certified green alternatives.
4. If a tool result has "success": false, apologise briefly, say what could not be
   looked up, and answer as well as you can without it. Never show raw errors.
5. Be conversational, professional, and helpful. Use RM for currency."""


class ChatPhase(str, Enum):
    """Phases of a single chat turn."""

    IDLE = "idle"
    CONTEXT_ASSEMBLY = "context_assembly"
    PROMPT_CONSTRUCTION = "prompt_construction"
    MODEL_INVOCATION = "model_invocation"
    RESPONSE_ASSEMBLY = "response_assembly"
    DONE = "done"
    ERROR = "error"


@dataclass
class ChatTurn:
    """Request-scoped state for one chat turn."""

    user_id: str
    message: str
    attachment_id: str | None = None
    phase: ChatPhase = ChatPhase.IDLE
    history: list[ChatPhase] = field(default_factory=lambda: [ChatPhase.IDLE])
    profile: UserProfile | None = None
    attachment_summary: str | None = None
    tool_calls_used: list[str] = field(default_factory=list)

    def advance(self, phase: ChatPhase) -> None:
        self.phase = phase
        self.history.append(phase)
        structlog.contextvars.bind_contextvars(chat_phase=phase.value)


@dataclass
class ChatReply:
    """Final answer for a chat turn."""

    reply: str
    tool_calls_used: list[str] = field(default_factory=list)

    def to_dict(self, include_tools: bool = True) -> dict[str, Any]:
        result: dict[str, Any] = {"reply": self.reply}
        if include_tools:
            result["toolCallsUsed"] = list(self.tool_calls_used)
        return result


def summarize_receipt(receipt: Receipt, max_chars: int) -> str:
    """Render an attached receipt as a bounded text block for the prompt."""
    line_items = json.dumps([item.to_dict() for item in receipt.line_items])
    block = (
        "=== SELECTED RECEIPT/INVOICE CONTEXT ===\n"
        f"Receipt ID: {receipt.id}\n"
        f"Vendor: {receipt.vendor or 'Unknown'}\n"
        f"Date: {receipt.date or 'N/A'}\n"
        f"Total: RM{receipt.total}\n"
        f"Line Items: {line_items}\n"
        "================================"
    )
    if len(block) > max_chars:
        block = block[: max(max_chars - 15, 0)] + "\n...[truncated]"
    return block


class AgentOrchestrator:
    """Runs chat turns against an LLM client, tool registry, and store."""

    def __init__(
        self,
        llm_client: LLMClient,
        registry: ToolRegistry,
        store: LedgerStore,
        attachment_max_chars: int | None = None,
    ):
        self._llm_client = llm_client
        self.registry = registry
        self._store = store
        self._attachment_max_chars = (
            attachment_max_chars or get_settings().attachment_summary_max_chars
        )

    async def chat(
        self, user_id: str, message: str, attachment_id: str | None = None
    ) -> ChatReply:
        """Run one chat turn and return the final reply."""
        turn = ChatTurn(user_id=user_id, message=message, attachment_id=attachment_id)

        with structlog.contextvars.bound_contextvars(user_id=user_id):
            logger.info("chat_turn_started", has_attachment=attachment_id is not None)
            try:
                await self._assemble_context(turn)

                turn.advance(ChatPhase.PROMPT_CONSTRUCTION)
                system_prompt = self.build_system_prompt(turn)

                turn.advance(ChatPhase.MODEL_INVOCATION)
                text = await self._invoke_model(turn, system_prompt)

                turn.advance(ChatPhase.RESPONSE_ASSEMBLY)
                reply = ChatReply(
                    reply=text or EMPTY_REPLY,
                    tool_calls_used=list(turn.tool_calls_used),
                )

                turn.advance(ChatPhase.DONE)
                logger.info("chat_turn_completed", tools_used=reply.tool_calls_used)
                return reply
            except Exception:
                failed_in = turn.phase
                turn.advance(ChatPhase.ERROR)
                logger.exception("chat_turn_failed", failed_phase=failed_in.value)
                raise
            finally:
                structlog.contextvars.unbind_contextvars("chat_phase")

    async def _assemble_context(self, turn: ChatTurn) -> None:
        turn.advance(ChatPhase.CONTEXT_ASSEMBLY)
        turn.profile = await self._store.get_user_profile(turn.user_id)
        if turn.attachment_id:
            turn.attachment_summary = await self._summarize_attachment(
                turn.user_id, turn.attachment_id
            )

    async def _summarize_attachment(self, user_id: str, attachment_id: str) -> str:
        try:
            receipt = await self._store.get_receipt(user_id, attachment_id)
        except KiraError as e:
            logger.warning("attachment_fetch_failed", attachment_id=attachment_id, error=str(e))
            return ATTACHMENT_ERROR
        if receipt is None:
            logger.info("attachment_not_found", attachment_id=attachment_id)
            return ATTACHMENT_NOT_FOUND
        return summarize_receipt(receipt, self._attachment_max_chars)

    def build_system_prompt(self, turn: ChatTurn) -> str:
        if turn.attachment_summary:
            attachment = (
                "User has attached this receipt/invoice to the chat:\n"
                f"{turn.attachment_summary}"
            )
        else:
            attachment = NO_ATTACHMENT
        return KIRA_SYSTEM_PROMPT.format(
            user_id=turn.user_id,
            profile=turn.profile.summary() if turn.profile else GUEST_PROFILE,
            attachment=attachment,
            message=turn.message,
        )

    async def _invoke_model(self, turn: ChatTurn, system_prompt: str) -> str:
        tools = self.registry.definitions()
        messages: list[dict[str, Any]] = [{"role": "user", "content": turn.message}]

        first = await self._llm_client.generate(
            system_prompt=system_prompt, messages=messages, tools=tools
        )
        if not first.tool_calls:
            return first.content

        turn.tool_calls_used = [call["name"] for call in first.tool_calls]
        results = await asyncio.gather(*(self._run_tool(call) for call in first.tool_calls))

        messages.append({
            "role": "assistant",
            "content": first.content,
            "tool_calls": first.tool_calls,
        })
        for call, result in zip(first.tool_calls, results):
            messages.append({
                "role": "tool_result",
                "tool_call_id": call["id"],
                "tool_name": call["name"],
                "content": json.dumps(result, default=str),
            })

        # Tools stay declared so providers accept the tool history; any new
        # requests in this completion are dropped.
        follow_up = await self._llm_client.generate(
            system_prompt=system_prompt, messages=messages, tools=tools
        )
        if follow_up.tool_calls:
            logger.warning(
                "follow_up_tool_requests_ignored",
                tools=[call["name"] for call in follow_up.tool_calls],
            )
        return follow_up.content

    async def _run_tool(self, call: dict[str, Any]) -> dict[str, Any]:
        arguments = call.get("arguments") or {}
        try:
            return await self.registry.execute(call["name"], arguments)
        except ToolExecutionError as e:
            logger.warning("unknown_tool_requested", tool=call["name"])
            return {"success": False, "error": str(e), "code": "unknown_tool"}
