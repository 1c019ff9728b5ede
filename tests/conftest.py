from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

import pytest

from baton.config import RunConfig
from baton.model import HandoffRequest, ModelRequest, ModelResponse, ToolCallRequest
from baton.session import MemorySession
from baton.tracing import InMemoryExporter, TraceRecorder
from baton.types import Usage


class ScriptedModel:
    """Returns queued responses in order; a step may be a callable of the request."""

    def __init__(self, *steps: ModelResponse | Callable[[ModelRequest], Any]) -> None:
        self._steps = list(steps)
        self.requests: list[ModelRequest] = []

    async def get_response(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request)
        if not self._steps:
            raise AssertionError("no scripted response left")
        step = self._steps.pop(0)
        if callable(step):
            step = step(request)
            if inspect.isawaitable(step):
                step = await step
        return step


def message(content: str, *, tokens: int = 0) -> ModelResponse:
    usage = Usage(requests=1, input_tokens=tokens, output_tokens=tokens, total_tokens=2 * tokens) if tokens else None
    return ModelResponse(message=content, usage=usage)


def calls(*specs: tuple[str, str, dict[str, Any]]) -> ModelResponse:
    return ModelResponse(tool_calls=[ToolCallRequest(call_id=cid, name=name, arguments=args) for cid, name, args in specs])


def handoff(target: str, reason: str | None = None) -> ModelResponse:
    return ModelResponse(handoff=HandoffRequest(target=target, reason=reason))


@pytest.fixture
def exporter() -> InMemoryExporter:
    return InMemoryExporter()


@pytest.fixture
def recorder(exporter: InMemoryExporter) -> TraceRecorder:
    return TraceRecorder(exporters=[exporter])


@pytest.fixture
def session() -> MemorySession:
    return MemorySession("test")


@pytest.fixture
def make_config(recorder: TraceRecorder, session: MemorySession) -> Callable[..., RunConfig]:
    def _make(model: Any, **overrides: Any) -> RunConfig:
        values: dict[str, Any] = {"model": model, "session": session, "recorder": recorder}
        values.update(overrides)
        return RunConfig(**values)

    return _make
