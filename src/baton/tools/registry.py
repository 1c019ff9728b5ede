"""Per-turn tool registry."""

from __future__ import annotations

import builtins
import json
import time
from collections.abc import Iterable
from typing import Any

from loguru import logger

from baton.context import ToolContext
from baton.errors import DuplicateToolError
from baton.tools.base import Tool


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    """Shorten text to width characters, cutting in the middle of words if needed."""
    if len(text) <= width:
        return text

    available = width - len(placeholder)
    if available <= 0:
        return placeholder

    return text[:available] + placeholder


class ToolRegistry:
    """Tools visible to the model for the active agent, keyed by name."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise DuplicateToolError(f"Duplicate tool name: {tool.name}")
        self._tools[tool.name] = tool

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> builtins.list[str]:
        return list(self._tools)

    def schemas(self) -> builtins.list[dict[str, Any]]:
        return [tool.schema() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def _log_tool_call(self, name: str, arguments: dict[str, Any], context: ToolContext | None) -> None:
        params: list[str] = []
        for key, value in arguments.items():
            try:
                rendered = json.dumps(value, ensure_ascii=False)
            except TypeError:
                rendered = repr(value)
            value = _shorten_text(rendered, width=30, placeholder="...")
            if value.startswith('"') and not value.endswith('"'):
                value = value + '"'
            if value.startswith("{") and not value.endswith("}"):
                value = value + "}"
            if value.startswith("[") and not value.endswith("]"):
                value = value + "]"
            params.append(f"{key}={value}")
        params_str = ", ".join(params)
        call_id = context.call_id if context is not None else "-"
        logger.info("tool.call.start name={} call_id={} {{ {} }}", name, call_id, params_str)

    async def execute(
        self,
        name: str,
        *,
        arguments: dict[str, Any],
        context: ToolContext | None = None,
    ) -> Any:
        tool = self.get(name)
        if tool is None:
            raise KeyError(name)

        self._log_tool_call(name, arguments, context)
        start = time.monotonic()
        try:
            return await tool.run(arguments, context)
        except Exception:
            logger.opt(exception=True).warning("tool.call.error name={}", name)
            raise
        finally:
            duration = time.monotonic() - start
            logger.info("tool.call.end name={} duration={:.3f}ms", name, duration * 1000)
