"""Agent definitions."""

from __future__ import annotations

import dataclasses
import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from baton.context import RunContext
from baton.errors import AgentConfigurationError, DuplicateToolError
from baton.guardrails import Guardrail
from baton.handoffs import Handoff
from baton.tools.base import Tool
from baton.tools.sources import ToolSource
from baton.tracing import AgentSpanData
from baton.types import TEXT_OUTPUT, OutputType, StructuredOutput, TextOutput

Instructions = Union[str, Callable[[RunContext, "Agent"], Union[str, Awaitable[str]]], None]


@dataclass(frozen=True, eq=False)
class Agent:
    """Immutable agent definition, shared read-only across runs.

    Sequence fields are stored as tuples. Use :meth:`clone` to derive a variant.
    """

    name: str
    instructions: Instructions = None
    tools: Sequence[Tool] = field(default_factory=tuple)
    tool_sources: Sequence[ToolSource] = field(default_factory=tuple)
    output_type: OutputType = TEXT_OUTPUT
    input_guardrails: Sequence[Guardrail] = field(default_factory=tuple)
    output_guardrails: Sequence[Guardrail] = field(default_factory=tuple)
    tool_input_guardrails: Sequence[Guardrail] = field(default_factory=tuple)
    tool_output_guardrails: Sequence[Guardrail] = field(default_factory=tuple)
    handoffs: Sequence[Agent | Handoff] = field(default_factory=tuple)
    model: str | None = None
    handoff_description: str | None = None

    def __post_init__(self) -> None:
        for name in (
            "tools",
            "tool_sources",
            "input_guardrails",
            "output_guardrails",
            "tool_input_guardrails",
            "tool_output_guardrails",
            "handoffs",
        ):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def clone(self, **changes: Any) -> Agent:
        return dataclasses.replace(self, **changes)

    async def get_instructions(self, context: RunContext) -> str | None:
        if self.instructions is None or isinstance(self.instructions, str):
            return self.instructions
        value = self.instructions(context, self)
        if inspect.isawaitable(value):
            value = await value
        return value

    def handoff_list(self) -> list[Handoff]:
        resolved: list[Handoff] = []
        for item in self.handoffs:
            if isinstance(item, Handoff):
                resolved.append(item)
            else:
                resolved.append(Handoff.to(item, description=item.handoff_description))
        return resolved

    def validate(self) -> None:
        """Raise a configuration error before any model call."""

        if not self.name or not self.name.strip():
            raise AgentConfigurationError("Agent name must not be empty")
        if not isinstance(self.output_type, (TextOutput, StructuredOutput)):
            raise AgentConfigurationError(f"Agent '{self.name}' has an invalid output_type: {self.output_type!r}")
        for tool in self.tools:
            if not isinstance(tool, Tool):
                raise AgentConfigurationError(f"Agent '{self.name}' has a non-tool entry: {tool!r}")
        for group in (
            self.input_guardrails,
            self.output_guardrails,
            self.tool_input_guardrails,
            self.tool_output_guardrails,
        ):
            for item in group:
                if not isinstance(item, Guardrail):
                    raise AgentConfigurationError(f"Agent '{self.name}' has a non-guardrail entry: {item!r}")

        seen: set[str] = set()
        names = [tool.name for tool in self.tools] + [handoff.tool_name for handoff in self.handoff_list()]
        for name in names:
            if name in seen:
                raise DuplicateToolError(f"Agent '{self.name}' exposes tool '{name}' more than once")
            seen.add(name)

    def span_data(self, tool_names: Sequence[str] = ()) -> AgentSpanData:
        return AgentSpanData(
            name=self.name,
            tools=list(tool_names) or [tool.name for tool in self.tools],
            handoffs=[handoff.agent_name for handoff in self.handoff_list()],
            output_type=self.output_type.name_for_trace,
        )
