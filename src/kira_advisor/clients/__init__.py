"""LLM client implementations for the Kira advisor."""

from kira_advisor.clients.base import LLMClient, LLMResponse, parse_json_reply
from kira_advisor.clients.claude import ClaudeClient
from kira_advisor.clients.gemini import GeminiClient
from kira_advisor.clients.openai_client import OpenAIClient
from kira_advisor.config import get_settings


def create_llm_client(provider: str | None = None) -> ClaudeClient | GeminiClient | OpenAIClient:
    """Create the LLM client for ``provider`` or the configured LLM_PROVIDER."""
    provider = (provider or get_settings().llm_provider).lower()
    if provider == "claude":
        return ClaudeClient()
    if provider == "openai":
        return OpenAIClient()
    return GeminiClient()


__all__ = [
    "LLMClient",
    "LLMResponse",
    "parse_json_reply",
    "ClaudeClient",
    "GeminiClient",
    "OpenAIClient",
    "create_llm_client",
]
