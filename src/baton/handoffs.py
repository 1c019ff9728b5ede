"""Handoff targets and the dispatcher that switches the active agent."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from baton.errors import HandoffResolutionError
from baton.model import HandoffRequest
from baton.tracing import HandoffSpanData, TraceRecorder

if TYPE_CHECKING:
    from baton.agent import Agent

HANDOFF_TOOL_PREFIX = "transfer_to_"
_TOOL_NAME_PATTERN = re.compile(r"[^A-Za-z0-9_-]")


def handoff_tool_name(agent_name: str) -> str:
    return HANDOFF_TOOL_PREFIX + _TOOL_NAME_PATTERN.sub("_", agent_name)


@dataclass(frozen=True)
class Handoff:
    """A handoff target; ``factory`` is resolved lazily so agents can reference each other."""

    agent_name: str
    factory: Callable[[], Agent]
    tool_description: str | None = None

    @classmethod
    def to(cls, agent: Agent, *, description: str | None = None) -> Handoff:
        return cls(agent_name=agent.name, factory=lambda: agent, tool_description=description)

    @classmethod
    def lazy(cls, agent_name: str, factory: Callable[[], Agent], *, description: str | None = None) -> Handoff:
        return cls(agent_name=agent_name, factory=factory, tool_description=description)

    @property
    def tool_name(self) -> str:
        return handoff_tool_name(self.agent_name)

    def resolve(self) -> Agent:
        return self.factory()

    def schema(self) -> dict[str, Any]:
        description = self.tool_description or f"Handoff to the {self.agent_name} agent to handle the request."
        return {
            "type": "function",
            "function": {
                "name": self.tool_name,
                "description": description,
                "parameters": {
                    "type": "object",
                    "properties": {"reason": {"type": "string", "description": "Why the handoff is needed."}},
                },
            },
        }


def handoff_output(agent_name: str) -> dict[str, str]:
    return {"assistant": agent_name}


class HandoffDispatcher:
    """Resolves handoff requests against the current agent and records a handoff span."""

    def __init__(self, recorder: TraceRecorder) -> None:
        self._recorder = recorder

    def find(self, agent: Agent, target: str) -> Handoff:
        for handoff in agent.handoff_list():
            if target in (handoff.agent_name, handoff.tool_name):
                if handoff.agent_name == agent.name:
                    raise HandoffResolutionError(agent.name, target, "agent cannot hand off to itself")
                return handoff
        raise HandoffResolutionError(agent.name, target)

    def is_handoff_call(self, agent: Agent, tool_name: str) -> bool:
        return any(handoff.tool_name == tool_name for handoff in agent.handoff_list())

    def dispatch(self, agent: Agent, request: HandoffRequest) -> Agent:
        data = HandoffSpanData(from_agent=agent.name, to_agent=request.target, reason=request.reason)
        with self._recorder.span(data):
            handoff = self.find(agent, request.target)
            new_agent = handoff.resolve()
            if new_agent.name == agent.name:
                raise HandoffResolutionError(agent.name, request.target, "agent cannot hand off to itself")
            data.to_agent = new_agent.name
        logger.info(
            "handoff.dispatched from={} to={} reason={}",
            agent.name,
            new_agent.name,
            request.reason or "-",
        )
        return new_agent
