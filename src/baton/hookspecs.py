"""Pluggy hook namespace and run lifecycle hook specifications."""

from __future__ import annotations

from typing import Any

import pluggy

from baton.context import RunContext
from baton.items import RunItem, ToolCall, ToolOutput

BATON_HOOK_NAMESPACE = "baton"
hookspec = pluggy.HookspecMarker(BATON_HOOK_NAMESPACE)
hookimpl = pluggy.HookimplMarker(BATON_HOOK_NAMESPACE)


class BatonHookSpecs:
    """Observer contract for run lifecycle events. Return values are ignored."""

    @hookspec
    def on_run_start(self, context: RunContext, agent: Any, input_items: list[RunItem]) -> None:
        """Observe the start of a run, after configuration is validated."""

    @hookspec
    def on_agent_start(self, context: RunContext, agent: Any) -> None:
        """Observe an agent becoming active (run start or after a handoff)."""

    @hookspec
    def on_agent_end(self, context: RunContext, agent: Any, output: Any) -> None:
        """Observe the final output produced by the active agent."""

    @hookspec
    def on_handoff(self, context: RunContext, from_agent: Any, to_agent: Any) -> None:
        """Observe a switch of the active agent."""

    @hookspec
    def on_tool_start(self, context: RunContext, agent: Any, call: ToolCall) -> None:
        """Observe one tool call before it runs."""

    @hookspec
    def on_tool_end(self, context: RunContext, agent: Any, call: ToolCall, output: ToolOutput) -> None:
        """Observe one tool call after it settled, successfully or not."""

    @hookspec
    def on_run_error(self, stage: str, error: Exception, context: RunContext | None) -> None:
        """Observe run failures and observer failures."""
