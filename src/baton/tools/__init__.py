"""Tool capabilities, registry and invoker."""

from baton.tools.base import Tool, tool_from_model
from baton.tools.invoker import ToolInvoker, TurnToolResult
from baton.tools.registry import ToolRegistry
from baton.tools.sources import StaticToolSource, ToolSource, UnsupportedToolSource

__all__ = [
    "StaticToolSource",
    "Tool",
    "ToolInvoker",
    "ToolRegistry",
    "ToolSource",
    "TurnToolResult",
    "UnsupportedToolSource",
    "tool_from_model",
]
