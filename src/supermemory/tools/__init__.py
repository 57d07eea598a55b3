"""Tool interface and registry for agent-facing memory operations."""

from .base import Tool, ToolResult
from .registry import ToolRegistry

__all__ = ["Tool", "ToolResult", "ToolRegistry"]
