from __future__ import annotations

from collections.abc import Callable

import pytest
from conftest import ScriptedModel, calls, handoff, message

from baton.agent import Agent
from baton.config import RunConfig
from baton.errors import MaxTurnsExceededError
from baton.items import MessageOutput
from baton.runner import Runner
from baton.session import MemorySession
from baton.stream import AgentUpdatedEvent, RunItemEvent
from baton.tools import Tool
from baton.types import NextStep

MakeConfig = Callable[..., RunConfig]


def _echo_tool() -> Tool:
    async def echo(text: str) -> str:
        return f"echo:{text}"

    return Tool(name="echo", handler=echo)


@pytest.mark.asyncio
async def test_streamed_run_emits_items_per_settled_turn(make_config: MakeConfig, session: MemorySession) -> None:
    model = ScriptedModel(calls(("c1", "echo", {"text": "ping"})), message("done"))
    agent = Agent(name="worker", tools=[_echo_tool()])

    stream = Runner().run_streamed(agent, "go", make_config(model))
    events = [event async for event in stream]
    result = await stream.result()

    assert [(event.type, event.turn) for event in events] == [
        ("tool_called", 1),
        ("tool_output", 1),
        ("message_output_created", 2),
    ]
    assert [event.item for event in events] == result.items
    assert result.next_step is NextStep.COMPLETE
    assert result.final_output == "done"
    assert stream.done
    assert len(await session.read()) == 4


@pytest.mark.asyncio
async def test_streamed_handoff_emits_agent_updated(make_config: MakeConfig) -> None:
    billing = Agent(name="billing")
    triage = Agent(name="triage", handoffs=[billing])
    model = ScriptedModel(handoff("billing"), message("refund issued"))

    stream = Runner().run_streamed(triage, "refund please", make_config(model))
    events = [event async for event in stream]

    updates = [event for event in events if isinstance(event, AgentUpdatedEvent)]
    assert [event.agent.name for event in updates] == ["billing"]
    assert updates[0].type == "agent_updated"
    last = events[-1]
    assert isinstance(last, RunItemEvent)
    assert last.item == MessageOutput(content="refund issued", agent="billing")
    assert (await stream.result()).last_agent is billing


@pytest.mark.asyncio
async def test_text_stream_yields_message_content(make_config: MakeConfig) -> None:
    model = ScriptedModel(calls(("c1", "echo", {"text": "x"})), message("final words"))

    stream = Runner().run_streamed(Agent(name="a", tools=[_echo_tool()]), "go", make_config(model))

    assert [text async for text in stream.text()] == ["final words"]


@pytest.mark.asyncio
async def test_stream_reraises_run_failure_after_settled_events(make_config: MakeConfig) -> None:
    model = ScriptedModel(*(calls((f"c{i}", "echo", {"text": str(i)})) for i in range(3)))
    stream = Runner().run_streamed(Agent(name="a", tools=[_echo_tool()]), "spin", make_config(model, max_turns=1))

    received: list[str] = []
    with pytest.raises(MaxTurnsExceededError):
        async for event in stream:
            received.append(event.type)

    assert received == ["tool_called", "tool_output"]
