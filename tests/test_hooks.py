from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
from conftest import ScriptedModel, calls, handoff, message

from baton.agent import Agent
from baton.config import RunConfig
from baton.errors import ModelBehaviorError
from baton.hook_runtime import HookRuntime
from baton.hookspecs import hookimpl
from baton.model import ModelResponse
from baton.runner import Runner
from baton.tools import Tool

MakeConfig = Callable[..., RunConfig]


class RecordingPlugin:
    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []

    @hookimpl
    def on_run_start(self, agent: Agent, input_items: list[Any]) -> None:
        self.events.append(("run_start", agent.name, len(input_items)))

    @hookimpl
    async def on_agent_start(self, agent: Agent) -> None:
        self.events.append(("agent_start", agent.name))

    @hookimpl
    def on_agent_end(self, agent: Agent, output: Any) -> None:
        self.events.append(("agent_end", agent.name, output))

    @hookimpl
    def on_handoff(self, from_agent: Agent, to_agent: Agent) -> None:
        self.events.append(("handoff", from_agent.name, to_agent.name))

    @hookimpl
    def on_tool_start(self, call: Any) -> None:
        self.events.append(("tool_start", call.call_id))

    @hookimpl
    def on_tool_end(self, call: Any, output: Any) -> None:
        self.events.append(("tool_end", call.call_id, output.output))

    @hookimpl
    def on_run_error(self, stage: str, error: Exception) -> None:
        self.events.append(("error", stage, type(error).__name__))


class BrokenPlugin:
    @hookimpl
    def on_agent_start(self, agent: Agent) -> None:
        raise RuntimeError("observer broke on purpose")


@pytest.mark.asyncio
async def test_lifecycle_hooks_fire_in_order(make_config: MakeConfig) -> None:
    async def ping() -> str:
        return "pong"

    specialist = Agent(name="B", tools=[Tool(name="ping", handler=ping)])
    triage = Agent(name="A", handoffs=[specialist])
    plugin = RecordingPlugin()
    model = ScriptedModel(handoff("B"), calls(("c1", "ping", {})), message("done"))

    await Runner(plugins=[plugin]).run(triage, "hi", make_config(model))

    assert plugin.events == [
        ("run_start", "A", 1),
        ("agent_start", "A"),
        ("handoff", "A", "B"),
        ("agent_start", "B"),
        ("tool_start", "c1"),
        ("tool_end", "c1", "pong"),
        ("agent_end", "B", "done"),
    ]


@pytest.mark.asyncio
async def test_failing_observer_is_isolated(make_config: MakeConfig) -> None:
    recorder_plugin = RecordingPlugin()
    model = ScriptedModel(message("still fine"))
    config = make_config(model, hooks=[BrokenPlugin(), recorder_plugin])

    result = await Runner().run(Agent(name="A"), "hi", config)

    assert result.final_output == "still fine"
    assert ("error", "on_agent_start:" + _plugin_name(config, BrokenPlugin), "RuntimeError") in recorder_plugin.events


@pytest.mark.asyncio
async def test_run_errors_are_reported(make_config: MakeConfig) -> None:
    plugin = RecordingPlugin()

    with pytest.raises(ModelBehaviorError):
        await Runner(plugins=[plugin]).run(Agent(name="A"), "hi", make_config(ScriptedModel(ModelResponse())))

    assert plugin.events[-1] == ("error", "run", "ModelBehaviorError")


def test_hook_report_lists_plugins() -> None:
    runtime = HookRuntime.from_plugins()
    runtime.register(RecordingPlugin(), name="recording")

    report = runtime.hook_report()

    assert report["on_run_start"] == ["recording"]
    assert report["on_run_error"] == ["recording"]


def _plugin_name(config: RunConfig, plugin_type: type) -> str:
    plugin = next(item for item in config.hooks if isinstance(item, plugin_type))
    return str(id(plugin))
