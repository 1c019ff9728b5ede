"""Run context handed to tools, guardrails and dynamic instructions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from baton.types import Usage

if TYPE_CHECKING:
    from baton.agent import Agent
    from baton.session import Session


@dataclass
class RunContext:
    """Mutable per-run state visible to user code."""

    context: Any = None
    usage: Usage = field(default_factory=Usage)
    session: Session | None = None
    current_agent: Agent | None = None
    turn: int = 0


@dataclass(frozen=True)
class ToolContext:
    """Context passed to tools declared with ``takes_context=True``."""

    run: RunContext
    call_id: str
    tool_name: str

    @property
    def context(self) -> Any:
        return self.run.context
