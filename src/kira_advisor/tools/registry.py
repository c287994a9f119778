"""Tool registry that bridges LLM tool calls to handlers."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from kira_advisor.errors import KiraError

logger = structlog.get_logger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class ToolExecutionError(Exception):
    """Error during tool execution."""

    def __init__(self, tool_name: str, message: str, details: Any = None):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name
        self.details = details


@dataclass(frozen=True)
class Tool:
    """A callable tool with its model-facing contract."""

    name: str
    description: str
    input_schema: dict[str, Any]
    output_schema: dict[str, Any]
    handler: ToolHandler

    def definition(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
            "output_schema": self.output_schema,
        }


class ToolRegistry:
    """Holds registered tools and executes calls against them.

    Domain failures never raise out of ``execute``; they come back as
    ``{"success": False, ...}`` so sibling calls are unaffected and the model
    can explain the failure.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, definition: dict[str, Any], handler: ToolHandler) -> Tool:
        """Register a handler under a tool definition. Names must be unique."""
        name = definition["name"]
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        tool = Tool(
            name=name,
            description=definition["description"],
            input_schema=definition["input_schema"],
            output_schema=definition.get("output_schema", {}),
            handler=handler,
        )
        self._tools[name] = tool
        logger.debug("tool_registered", tool=name)
        return tool

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def definitions(self) -> list[dict[str, Any]]:
        """Tool definitions in registration order, for the LLM client."""
        return [tool.definition() for tool in self._tools.values()]

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Execute a tool call and return the result envelope."""
        tool = self._tools.get(tool_name)
        if not tool:
            raise ToolExecutionError(tool_name, f"Unknown tool: {tool_name}")

        logger.info("executing_tool", tool=tool_name, args=arguments)

        try:
            result = await tool.handler(arguments)
            logger.info("tool_executed", tool=tool_name, success=True)
            return {"success": True, "result": result}
        except KiraError as e:
            logger.warning(
                "tool_domain_error",
                tool=tool_name,
                code=e.code,
                details=e.details,
            )
            return {"success": False, "error": e.message, "code": e.code}
        except Exception as e:
            logger.exception("tool_execution_error", tool=tool_name)
            return {"success": False, "error": str(e), "code": "internal_error"}
