"""Provider-neutral response type and client protocol."""

import json
from dataclasses import dataclass
from typing import Any, Protocol

from kira_advisor.errors import ExternalServiceError


@dataclass
class LLMResponse:
    """Response from any LLM provider, normalized to one shape."""

    content: str
    tool_calls: list[dict[str, Any]]
    stop_reason: str
    usage: dict[str, int]


class LLMClient(Protocol):
    """What the advisor needs from a language-model client.

    Messages use roles ``user``, ``assistant`` (optionally with
    ``tool_calls``), and ``tool_result`` (with ``tool_call_id`` and
    ``tool_name``). Tools use ``name``/``description``/``input_schema``.
    """

    async def generate(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> LLMResponse: ...

    async def generate_from_image(
        self, prompt: str, image_bytes: bytes, mime_type: str = "image/jpeg"
    ) -> str: ...


def parse_json_reply(text: str, service: str) -> dict[str, Any]:
    """Parse a JSON object from a model reply, tolerating a markdown fence."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [line for line in lines[1:] if not line.strip().startswith("```")]
        cleaned = "\n".join(lines)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ExternalServiceError(
            service, "Model reply was not valid JSON", details={"raw": text[:500]}
        ) from e
    if not isinstance(data, dict):
        raise ExternalServiceError(
            service, "Model reply was not a JSON object", details={"raw": text[:500]}
        )
    return data
