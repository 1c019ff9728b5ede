"""Concurrent execution of the tool calls of one turn."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import BaseModel

from baton.context import RunContext, ToolContext
from baton.errors import AllToolCallsFailedError, ToolCallError
from baton.guardrails import GuardrailEngine, ToolInputPayload, ToolOutputPayload, rejecting_result
from baton.hook_runtime import HookRuntime
from baton.items import ToolCall, ToolOutput
from baton.tools.registry import ToolRegistry
from baton.tracing import FunctionSpanData, SpanError, TraceRecorder
from baton.types import ToolErrorPolicy

if TYPE_CHECKING:
    from baton.agent import Agent


@dataclass
class TurnToolResult:
    """Outputs of one turn, in the order the calls were requested."""

    outputs: list[ToolOutput] = field(default_factory=list)
    errors: list[ToolCallError] = field(default_factory=list)


@dataclass
class _CallOutcome:
    output: ToolOutput
    timed_out: bool = False


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


class ToolInvoker:
    """Runs tool calls as sibling tasks and reassembles their outputs in call order.

    A failing call becomes an error output while its siblings keep running.
    Tool-input and tool-output guardrails may replace a call's output with
    rejection content; their tripwires are fatal and propagate as-is.
    """

    def __init__(
        self,
        *,
        recorder: TraceRecorder,
        guardrails: GuardrailEngine,
        hooks: HookRuntime,
        policy: ToolErrorPolicy = ToolErrorPolicy.COLLECT,
        default_timeout_seconds: float | None = None,
        abort_on_all_failures: bool = True,
    ) -> None:
        self._recorder = recorder
        self._guardrails = guardrails
        self._hooks = hooks
        self.policy = policy
        self.default_timeout_seconds = default_timeout_seconds
        self.abort_on_all_failures = abort_on_all_failures

    async def invoke(
        self,
        calls: Sequence[ToolCall],
        *,
        registry: ToolRegistry,
        agent: Agent,
        context: RunContext,
        rejections: Mapping[str, str] | None = None,
    ) -> TurnToolResult:
        if not calls:
            return TurnToolResult()
        rejections = rejections or {}

        tasks = [
            asyncio.create_task(
                self._run_one(call, registry=registry, agent=agent, context=context, rejection=rejections.get(call.call_id)),
                name=f"tool:{call.name}:{call.call_id}",
            )
            for call in calls
        ]
        try:
            await asyncio.wait(tasks)
        except asyncio.CancelledError:
            # In-flight calls are allowed to finish; their results are dropped.
            logger.warning("tool.turn.cancelled calls={}", len(tasks))
            await asyncio.wait(tasks)
            raise

        fatal = [exc for exc in (task.exception() for task in tasks) if exc is not None]
        if fatal:
            raise fatal[0]

        result = TurnToolResult()
        for call, task in zip(calls, tasks, strict=True):
            outcome = task.result()
            output = outcome.output
            result.outputs.append(output)
            if output.error is not None and call.call_id not in rejections:
                result.errors.append(ToolCallError(call.name, call.call_id, output.error, timed_out=outcome.timed_out))

        logger.info(
            "tool.turn.settled agent={} calls={} failed={}",
            agent.name,
            len(calls),
            len(result.errors),
        )
        self._apply_policy(calls, result, rejections)
        return result

    def _apply_policy(self, calls: Sequence[ToolCall], result: TurnToolResult, rejections: Mapping[str, str]) -> None:
        if not result.errors:
            return
        if self.policy is ToolErrorPolicy.FAIL_FAST:
            raise result.errors[0]
        executed = [call for call in calls if call.call_id not in rejections]
        if len(result.errors) != len(executed):
            return
        # A turn where every call timed out aborts regardless of the flag.
        if self.abort_on_all_failures or all(error.timed_out for error in result.errors):
            raise AllToolCallsFailedError(result.errors)

    async def _run_one(
        self,
        call: ToolCall,
        *,
        registry: ToolRegistry,
        agent: Agent,
        context: RunContext,
        rejection: str | None,
    ) -> _CallOutcome:
        if rejection is not None:
            output = ToolOutput(call_id=call.call_id, name=call.name, error=rejection)
            await self._hooks.notify("on_tool_end", context=context, agent=agent, call=call, output=output)
            return _CallOutcome(output)

        include_data = self._recorder.include_sensitive_data
        data = FunctionSpanData(
            name=call.name,
            call_id=call.call_id,
            input=dict(call.arguments) if include_data else None,
        )
        await self._hooks.notify("on_tool_start", context=context, agent=agent, call=call)
        with self._recorder.span(data) as span:
            outcome = await self._guarded_execute(call, registry=registry, agent=agent, context=context)
            output = outcome.output
            if output.error is not None:
                span.set_error(SpanError(message=output.error, data={"type": "ToolCallError"}))
            elif include_data:
                data.output = output.output
        await self._hooks.notify("on_tool_end", context=context, agent=agent, call=call, output=output)
        return outcome

    async def _guarded_execute(
        self,
        call: ToolCall,
        *,
        registry: ToolRegistry,
        agent: Agent,
        context: RunContext,
    ) -> _CallOutcome:
        if registry.has(call.name) and agent.tool_input_guardrails:
            results = await self._guardrails.run_phase(
                "tool_input",
                agent.tool_input_guardrails,
                ToolInputPayload(tool_name=call.name, arguments=dict(call.arguments)),
                context,
                agent=agent,
            )
            rejected = rejecting_result(results)
            if rejected is not None:
                logger.info("tool.call.rejected name={} call_id={} phase=tool_input", call.name, call.call_id)
                return _CallOutcome(ToolOutput(call_id=call.call_id, name=call.name, output=_jsonable(rejected.content)))

        outcome = await self._execute(call, registry=registry, context=context)
        if outcome.output.error is not None or not agent.tool_output_guardrails:
            return outcome

        results = await self._guardrails.run_phase(
            "tool_output",
            agent.tool_output_guardrails,
            ToolOutputPayload(tool_name=call.name, arguments=dict(call.arguments), output=outcome.output.output),
            context,
            agent=agent,
        )
        rejected = rejecting_result(results)
        if rejected is not None:
            logger.info("tool.call.rejected name={} call_id={} phase=tool_output", call.name, call.call_id)
            return _CallOutcome(ToolOutput(call_id=call.call_id, name=call.name, output=_jsonable(rejected.content)))
        return outcome

    async def _execute(self, call: ToolCall, *, registry: ToolRegistry, context: RunContext) -> _CallOutcome:
        tool = registry.get(call.name)
        if tool is None:
            logger.warning("tool.not_found name={} call_id={}", call.name, call.call_id)
            return _CallOutcome(ToolOutput(call_id=call.call_id, name=call.name, error=f"Tool not found: {call.name}"))

        timeout = tool.timeout_seconds or self.default_timeout_seconds
        tool_context = ToolContext(run=context, call_id=call.call_id, tool_name=call.name)
        try:
            async with asyncio.timeout(timeout) as deadline:
                value = await registry.execute(call.name, arguments=dict(call.arguments), context=tool_context)
        except TimeoutError as exc:
            if deadline.expired():
                logger.warning("tool.call.timeout name={} call_id={} timeout={}s", call.name, call.call_id, timeout)
                output = ToolOutput(call_id=call.call_id, name=call.name, error=f"Tool timed out after {timeout}s")
                return _CallOutcome(output, timed_out=True)
            return _CallOutcome(ToolOutput(call_id=call.call_id, name=call.name, error=tool.format_error(exc)))
        except Exception as exc:
            return _CallOutcome(ToolOutput(call_id=call.call_id, name=call.name, error=tool.format_error(exc)))
        return _CallOutcome(ToolOutput(call_id=call.call_id, name=call.name, output=_jsonable(value)))
