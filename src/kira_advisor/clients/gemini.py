"""Google Gemini client with function calling and image input.

Uses the google-genai SDK (v1.0+) async surface.
"""

from collections.abc import Callable
from typing import Any, cast

import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from kira_advisor.clients.base import LLMResponse
from kira_advisor.config import get_settings
from kira_advisor.errors import ExternalServiceError

logger = structlog.get_logger(__name__)


class GeminiClient:
    """Client for Google's Gemini API with tool use support."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ):
        settings = get_settings()
        self._api_key = api_key or settings.google_api_key.get_secret_value()
        self._model_name = model or settings.gemini_model
        self._max_tokens = max_tokens or settings.llm_max_tokens
        self._temperature = temperature if temperature is not None else settings.llm_temperature

        self._client = genai.Client(api_key=self._api_key)

        self._logger = logger.bind(client="gemini", model=self._model_name)

    def _convert_json_schema_to_gemini(self, schema: dict[str, Any]) -> dict[str, Any]:
        """Convert JSON Schema to Gemini's schema format.

        Gemini uses a subset of OpenAPI schema format.
        """
        gemini_schema: dict[str, Any] = {}

        if "type" in schema:
            type_map = {
                "string": "STRING",
                "integer": "INTEGER",
                "number": "NUMBER",
                "boolean": "BOOLEAN",
                "array": "ARRAY",
                "object": "OBJECT",
            }
            gemini_schema["type"] = type_map.get(schema["type"], "STRING")

        if "description" in schema:
            gemini_schema["description"] = schema["description"]

        if "enum" in schema:
            gemini_schema["enum"] = schema["enum"]

        if "properties" in schema:
            gemini_schema["properties"] = {
                k: self._convert_json_schema_to_gemini(v)
                for k, v in schema["properties"].items()
            }

        if "required" in schema:
            gemini_schema["required"] = schema["required"]

        if "items" in schema:
            gemini_schema["items"] = self._convert_json_schema_to_gemini(schema["items"])

        return gemini_schema

    def _convert_tools_to_gemini_format(
        self, tools: list[dict[str, Any]]
    ) -> list[types.Tool]:
        """Convert our tool format to Gemini's expected format."""
        function_declarations = []

        for tool in tools:
            parameters = types.Schema.model_validate(
                self._convert_json_schema_to_gemini(tool["input_schema"])
            )
            function_declarations.append(
                types.FunctionDeclaration(
                    name=tool["name"],
                    description=tool["description"],
                    parameters=parameters,
                )
            )

        return [types.Tool(function_declarations=function_declarations)]

    def _convert_messages_to_gemini_format(
        self, messages: list[dict[str, Any]]
    ) -> list[types.Content]:
        """Convert conversation history to Gemini's content format."""
        gemini_contents = []

        for msg in messages:
            if msg["role"] == "user":
                gemini_contents.append(
                    types.Content(role="user", parts=[types.Part(text=msg["content"])])
                )
            elif msg["role"] == "assistant":
                parts = []
                if msg.get("content"):
                    parts.append(types.Part(text=msg["content"]))
                for tool_call in msg.get("tool_calls", []):
                    parts.append(
                        types.Part(
                            function_call=types.FunctionCall(
                                name=tool_call["name"],
                                args=tool_call["arguments"],
                            )
                        )
                    )
                gemini_contents.append(types.Content(role="model", parts=parts))
            elif msg["role"] == "tool_result":
                gemini_contents.append(
                    types.Content(
                        role="user",
                        parts=[
                            types.Part(
                                function_response=types.FunctionResponse(
                                    name=msg.get("tool_name", "function"),
                                    response={"result": msg["content"]},
                                )
                            )
                        ],
                    )
                )

        return gemini_contents

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse Gemini response into our format."""
        text_parts: list[str] = []
        tool_calls: list[dict[str, Any]] = []
        stop_reason = "end_turn"

        if response.candidates:
            candidate = response.candidates[0]
            parts = candidate.content.parts if candidate.content and candidate.content.parts else []

            for part in parts:
                if getattr(part, "text", None):
                    text_parts.append(part.text)
                elif getattr(part, "function_call", None):
                    fc = part.function_call
                    tool_calls.append({
                        "id": fc.id or f"call_{fc.name}_{len(tool_calls)}",
                        "name": fc.name,
                        "arguments": dict(fc.args) if fc.args else {},
                    })

            finish_reason = getattr(candidate.finish_reason, "value", candidate.finish_reason)
            stop_reason_map = {
                "STOP": "end_turn",
                "MAX_TOKENS": "max_tokens",
                "SAFETY": "content_filter",
                "RECITATION": "content_filter",
            }
            stop_reason = stop_reason_map.get(str(finish_reason), "end_turn")

            if tool_calls:
                stop_reason = "tool_use"

        usage = {"input_tokens": 0, "output_tokens": 0}
        if getattr(response, "usage_metadata", None):
            usage["input_tokens"] = (
                getattr(response.usage_metadata, "prompt_token_count", 0) or 0
            )
            usage["output_tokens"] = (
                getattr(response.usage_metadata, "candidates_token_count", 0) or 0
            )

        return LLMResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            stop_reason=stop_reason,
            usage=usage,
        )

    async def generate(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> LLMResponse:
        """Generate a response from Gemini.

        Args:
            system_prompt: The system prompt defining agent behavior.
            messages: Conversation history as list of message dicts.
            tools: Optional list of tool definitions for function calling.

        Returns:
            LLMResponse with content, tool calls, and usage info.
        """
        self._logger.debug(
            "generating_response",
            message_count=len(messages),
            tool_count=len(tools) if tools else 0,
        )

        config = types.GenerateContentConfig(
            max_output_tokens=self._max_tokens,
            temperature=self._temperature,
            system_instruction=system_prompt,
        )
        if tools:
            config.tools = cast(
                list[types.Tool | Callable[..., Any]],
                self._convert_tools_to_gemini_format(tools),
            )

        contents_payload = cast(list[Any], self._convert_messages_to_gemini_format(messages))

        try:
            response = await self._client.aio.models.generate_content(
                model=self._model_name,
                contents=contents_payload,
                config=config,
            )
        except genai_errors.APIError as e:
            self._logger.error("api_error", error=str(e))
            raise ExternalServiceError("gemini", str(e)) from e

        parsed = self._parse_response(response)
        self._logger.info(
            "response_generated",
            stop_reason=parsed.stop_reason,
            tool_calls=len(parsed.tool_calls),
            input_tokens=parsed.usage["input_tokens"],
            output_tokens=parsed.usage["output_tokens"],
        )
        return parsed

    async def generate_from_image(
        self, prompt: str, image_bytes: bytes, mime_type: str = "image/jpeg"
    ) -> str:
        """Send one image plus an instruction and return the text reply."""
        self._logger.debug("generating_from_image", image_bytes=len(image_bytes))
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model_name,
                contents=[
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                    prompt,
                ],
                config=types.GenerateContentConfig(
                    max_output_tokens=self._max_tokens,
                    temperature=0.0,
                ),
            )
        except genai_errors.APIError as e:
            self._logger.error("api_error", error=str(e))
            raise ExternalServiceError("gemini", str(e)) from e
        return response.text or ""
