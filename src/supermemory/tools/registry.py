"""Registry that exposes memory tools to an agent host and dispatches calls."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from .base import Tool, ToolResult

if TYPE_CHECKING:
    from ..logging import JSONLLogger

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Named set of tools for one session, with validated, logged dispatch.

    Every dispatch ends in a ToolResult: unknown names, invalid arguments
    and exceptions raised by a tool all become failed results, so a tool
    call can never break the host's turn.
    """

    def __init__(self, event_log: JSONLLogger | None = None, session_key: str = "") -> None:
        """Initialize an empty registry.

        Args:
            event_log: Optional structured log for tool calls and results.
            session_key: Session the dispatched calls are attributed to.
        """
        self._tools: dict[str, Tool] = {}
        self.event_log = event_log
        self.session_key = session_key

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def register(self, tool: Tool) -> None:
        """Register a tool. Names must be unique."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool

    def register_all(self, tools: list[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """List registered tool names in registration order."""
        return list(self._tools)

    def get_tools_schema(self) -> list[dict[str, Any]]:
        """Get function-calling schemas for every registered tool."""
        return [tool.get_schema() for tool in self._tools.values()]

    async def dispatch(self, tool_name: str, args: dict[str, Any] | None = None) -> ToolResult:
        """Validate and run one tool call.

        Args:
            tool_name: Name of the tool to run.
            args: Call arguments; None means no arguments.

        Returns:
            The tool's result, or a failed ToolResult describing why the
            call could not run.
        """
        args = args or {}
        if self.event_log is not None:
            self.event_log.log_tool_call(tool_name, args, session_key=self.session_key)

        started = time.monotonic()
        result = await self._run(tool_name, args)

        if self.event_log is not None:
            self.event_log.log_tool_result(
                tool_name,
                result.success,
                session_key=self.session_key,
                duration_ms=(time.monotonic() - started) * 1000,
                error=result.error,
            )
        return result

    async def _run(self, tool_name: str, args: dict[str, Any]) -> ToolResult:
        tool = self._tools.get(tool_name)
        if tool is None:
            return ToolResult(success=False, output="", error=f"Unknown tool: {tool_name}")

        valid, error = tool.validate_args(args)
        if not valid:
            return ToolResult(success=False, output="", error=error)

        try:
            return await tool.execute(**args)
        except Exception as e:
            logger.warning("Memory tool %s failed: %s", tool_name, e)
            return ToolResult(success=False, output="", error=f"Tool execution failed: {e}")
