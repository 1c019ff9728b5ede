from __future__ import annotations

from collections.abc import Callable

import pytest
from conftest import ScriptedModel, calls, message

from baton.agent import Agent
from baton.config import RunConfig
from baton.errors import ConfigurationError
from baton.runner import Runner
from baton.session import MemorySession
from baton.tools import Tool
from baton.types import NextStep

MakeConfig = Callable[..., RunConfig]


def _tools(executed: list[str]) -> list[Tool]:
    async def delete_file(path: str) -> str:
        executed.append(f"delete:{path}")
        return "deleted"

    async def list_files() -> list[str]:
        executed.append("list")
        return ["a.txt"]

    return [
        Tool(name="delete_file", handler=delete_file, needs_approval=True),
        Tool(name="list_files", handler=list_files),
    ]


@pytest.mark.asyncio
async def test_turn_needing_approval_interrupts_before_any_call(make_config: MakeConfig, session: MemorySession) -> None:
    executed: list[str] = []
    agent = Agent(name="ops", tools=_tools(executed))
    model = ScriptedModel(calls(("c1", "list_files", {}), ("c2", "delete_file", {"path": "a.txt"})), message("cleaned"))
    config = make_config(model)

    paused = await Runner().run(agent, "clean up", config)

    assert paused.next_step is NextStep.INTERRUPT
    assert [call.call_id for call in paused.interruptions] == ["c2"]
    assert executed == []
    assert await session.read() == []

    paused.state.approve("c2")
    result = await Runner().run(agent, paused.state, config)

    assert result.next_step is NextStep.COMPLETE
    assert result.final_output == "cleaned"
    assert executed == ["list", "delete:a.txt"] or executed == ["delete:a.txt", "list"]
    history = await session.read()
    assert [item.type for item in history] == [
        "message_input",
        "tool_call",
        "tool_call",
        "tool_output",
        "tool_output",
        "message_output",
    ]
    assert history[4].output == "deleted"


@pytest.mark.asyncio
async def test_rejected_call_gets_error_output(make_config: MakeConfig, session: MemorySession) -> None:
    executed: list[str] = []
    agent = Agent(name="ops", tools=_tools(executed))
    model = ScriptedModel(calls(("c1", "delete_file", {"path": "a.txt"})), message("left it alone"))
    config = make_config(model)

    paused = await Runner().run(agent, "delete it", config)
    paused.state.reject("c1", "not today")
    result = await Runner().run(agent, paused.state, config)

    assert executed == []
    assert result.final_output == "left it alone"
    history = await session.read()
    assert history[2].error == "not today"
    # A rejection is a decision, not a failed turn.
    assert result.next_step is NextStep.COMPLETE


@pytest.mark.asyncio
async def test_resume_requires_decisions(make_config: MakeConfig) -> None:
    agent = Agent(name="ops", tools=_tools([]))
    model = ScriptedModel(calls(("c1", "delete_file", {"path": "a.txt"})))
    config = make_config(model)

    paused = await Runner().run(agent, "delete it", config)

    with pytest.raises(ConfigurationError, match="undecided"):
        await Runner().run(agent, paused.state, config)
    with pytest.raises(KeyError):
        paused.state.approve("unknown")
