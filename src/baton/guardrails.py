"""Guardrail definitions and the sequential guardrail engine."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger

from baton.context import RunContext
from baton.errors import (
    GuardrailExecutionError,
    GuardrailTripwireTriggered,
    InputGuardrailTripwireTriggered,
    OutputGuardrailTripwireTriggered,
    ToolInputGuardrailTripwireTriggered,
    ToolOutputGuardrailTripwireTriggered,
)
from baton.tracing import GuardrailSpanData, TraceRecorder

if TYPE_CHECKING:
    from baton.agent import Agent

GuardrailPhase = Literal["input", "output", "tool_input", "tool_output"]

_TRIPWIRES: dict[str, type[GuardrailTripwireTriggered]] = {
    "input": InputGuardrailTripwireTriggered,
    "output": OutputGuardrailTripwireTriggered,
    "tool_input": ToolInputGuardrailTripwireTriggered,
    "tool_output": ToolOutputGuardrailTripwireTriggered,
}


_REJECTABLE_PHASES = frozenset({"tool_input", "tool_output"})


class ToolGuardrailBehavior(str, Enum):
    """What a tool guardrail asks the invoker to do with a call."""

    ALLOW = "allow"
    REJECT_CONTENT = "reject_content"
    THROW_EXCEPTION = "throw_exception"


@dataclass(frozen=True)
class GuardrailResult:
    tripped: bool = False
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    rejected: bool = False
    content: Any = None

    @property
    def behavior(self) -> ToolGuardrailBehavior:
        if self.tripped:
            return ToolGuardrailBehavior.THROW_EXCEPTION
        if self.rejected:
            return ToolGuardrailBehavior.REJECT_CONTENT
        return ToolGuardrailBehavior.ALLOW

    @classmethod
    def passed(cls, **metadata: Any) -> GuardrailResult:
        return cls(tripped=False, metadata=metadata)

    @classmethod
    def tripwire(cls, reason: str | None = None, **metadata: Any) -> GuardrailResult:
        return cls(tripped=True, reason=reason, metadata=metadata)

    @classmethod
    def reject_content(cls, content: Any, reason: str | None = None, **metadata: Any) -> GuardrailResult:
        """Replace the tool's output with ``content`` (tool phases only)."""
        return cls(rejected=True, content=content, reason=reason, metadata=metadata)


@dataclass(frozen=True)
class ToolInputPayload:
    """What a tool-input guardrail sees before a call runs."""

    tool_name: str
    arguments: dict[str, Any]


@dataclass(frozen=True)
class ToolOutputPayload:
    """What a tool-output guardrail sees after one successful call."""

    tool_name: str
    arguments: dict[str, Any]
    output: Any


GuardrailCheck = Callable[[RunContext, "Agent", Any], "GuardrailResult | Awaitable[GuardrailResult]"]


@dataclass(frozen=True)
class Guardrail:
    """A named policy check; ``check(context, agent, payload)`` may be sync or async."""

    check: GuardrailCheck
    name: str | None = None

    @property
    def guardrail_name(self) -> str:
        return self.name or getattr(self.check, "__name__", "guardrail")


def guardrail(func: GuardrailCheck | None = None, *, name: str | None = None) -> Any:
    """Decorator turning a check function into a :class:`Guardrail`."""

    def decorator(check: GuardrailCheck) -> Guardrail:
        return Guardrail(check=check, name=name)

    if func is not None:
        return decorator(func)
    return decorator


class GuardrailEngine:
    """Evaluates guardrails one at a time, stopping at the first trip."""

    def __init__(self, recorder: TraceRecorder) -> None:
        self._recorder = recorder

    async def evaluate(
        self,
        guardrail: Guardrail,
        payload: Any,
        context: RunContext,
        *,
        agent: Agent,
        phase: GuardrailPhase,
    ) -> GuardrailResult:
        name = guardrail.guardrail_name
        with self._recorder.span(GuardrailSpanData(name=name, phase=phase)) as span:
            try:
                result = guardrail.check(context, agent, payload)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                logger.opt(exception=True).warning("guardrail.failed name={} phase={}", name, phase)
                raise GuardrailExecutionError(name, phase) from exc
            if not isinstance(result, GuardrailResult):
                raise GuardrailExecutionError(name, phase) from TypeError(
                    f"expected GuardrailResult, got {type(result).__name__}"
                )
            span.data.triggered = result.tripped
            span.data.behavior = result.behavior.value
            span.data.reason = result.reason
            span.data.metadata = dict(result.metadata)
        logger.info(
            "guardrail.evaluated name={} phase={} behavior={}",
            name,
            phase,
            result.behavior.value,
        )
        return result

    async def run_phase(
        self,
        phase: GuardrailPhase,
        guardrails: Sequence[Guardrail],
        payload: Any,
        context: RunContext,
        *,
        agent: Agent,
    ) -> list[GuardrailResult]:
        """Evaluate ``guardrails`` in order.

        A trip raises the phase's tripwire error. In tool phases a rejection
        also stops the phase; it is then the last result returned.
        """

        results: list[GuardrailResult] = []
        for item in guardrails:
            result = await self.evaluate(item, payload, context, agent=agent, phase=phase)
            results.append(result)
            if result.tripped:
                raise _TRIPWIRES[phase](item.guardrail_name, result.reason, result.metadata)
            if result.rejected and phase in _REJECTABLE_PHASES:
                break
        return results


def rejecting_result(results: Sequence[GuardrailResult]) -> GuardrailResult | None:
    """The rejecting result that ended a tool phase, if any."""
    if results and results[-1].rejected:
        return results[-1]
    return None
