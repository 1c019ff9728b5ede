"""Event stream for runs started with :meth:`Runner.run_streamed`."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Union

from baton.items import MessageInput, MessageOutput, RunItem, ToolCall, ToolOutput

if TYPE_CHECKING:
    from baton.agent import Agent
    from baton.runner import RunResult


@dataclass(frozen=True)
class RunItemEvent:
    """An item was added to the run's history."""

    item: RunItem
    turn: int

    @property
    def type(self) -> str:
        match self.item:
            case MessageOutput():
                return "message_output_created"
            case ToolCall():
                return "tool_called"
            case ToolOutput():
                return "tool_output"
            case MessageInput():
                return "message_input_created"
        raise TypeError(f"Unknown run item: {type(self.item).__name__}")


@dataclass(frozen=True)
class AgentUpdatedEvent:
    """A handoff made ``agent`` the active agent."""

    agent: Agent
    type: Literal["agent_updated"] = "agent_updated"


StreamEvent = Union[RunItemEvent, AgentUpdatedEvent]

_DONE = object()


class StreamedRun:
    """Handle on a run executing in the background.

    Iterate it once to receive events as turns settle. Iteration ends when the run
    ends and re-raises the run's error, if any. :meth:`result` waits for the
    final :class:`RunResult`.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._task: asyncio.Task[RunResult] | None = None

    def _attach(self, task: asyncio.Task[RunResult]) -> None:
        self._task = task
        task.add_done_callback(lambda _: self._queue.put_nowait(_DONE))

    def emit(self, event: StreamEvent) -> None:
        self._queue.put_nowait(event)

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self._queue.get()
            if event is _DONE:
                break
            yield event  # type: ignore[misc]
        await self.result()

    async def text(self) -> AsyncIterator[str]:
        """Only the content of message outputs."""
        async for event in self:
            if isinstance(event, RunItemEvent) and isinstance(event.item, MessageOutput):
                yield event.item.content

    async def result(self) -> RunResult:
        assert self._task is not None
        return await self._task

    def cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
