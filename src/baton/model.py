"""Model adapter boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from baton.items import RunItem, dump_items
from baton.types import Usage


@dataclass(frozen=True)
class ToolCallRequest:
    call_id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HandoffRequest:
    """Explicit request to switch agents; ``target`` is an agent or handoff tool name."""

    target: str
    reason: str | None = None


@dataclass(frozen=True)
class ModelRequest:
    agent_name: str
    instructions: str | None
    tools: list[dict[str, Any]]
    history: list[RunItem]
    output_schema: dict[str, Any] | None = None
    model: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent": self.agent_name,
            "model": self.model,
            "instructions": self.instructions,
            "tools": [tool["function"]["name"] for tool in self.tools],
            "output_schema": self.output_schema,
            "history": dump_items(self.history),
        }


@dataclass(frozen=True)
class ModelResponse:
    message: str | None = None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    handoff: HandoffRequest | None = None
    usage: Usage | None = None

    @property
    def is_empty(self) -> bool:
        return self.message is None and not self.tool_calls and self.handoff is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "tool_calls": [
                {"call_id": call.call_id, "name": call.name, "arguments": call.arguments} for call in self.tool_calls
            ],
            "handoff": {"target": self.handoff.target, "reason": self.handoff.reason} if self.handoff else None,
        }


@runtime_checkable
class ModelAdapter(Protocol):
    """Provider client the runner talks to; one call per turn."""

    async def get_response(self, request: ModelRequest) -> ModelResponse: ...
