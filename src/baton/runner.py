"""Turn-loop controller.

A run alternates model calls and tool execution until the active agent produces
a final message, the run pauses for human approval, or a limit is hit. Every
settled turn is committed to the session, the run's new input first.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from baton.agent import Agent
from baton.config import RunConfig
from baton.context import RunContext
from baton.errors import (
    ConfigurationError,
    DuplicateToolError,
    MaxTurnsExceededError,
    ModelBehaviorError,
    NotSupportedError,
    RunCancelledError,
    RunTimeoutError,
)
from baton.guardrails import GuardrailEngine
from baton.handoffs import HandoffDispatcher, handoff_output
from baton.hook_runtime import HookRuntime
from baton.items import MessageOutput, RunItem, ToolCall, ToolOutput, coerce_input, dump_items
from baton.model import HandoffRequest, ModelRequest, ModelResponse
from baton.stream import AgentUpdatedEvent, RunItemEvent, StreamedRun
from baton.tools.base import Tool
from baton.tools.invoker import ToolInvoker
from baton.tools.registry import ToolRegistry
from baton.tracing import GenerationSpanData, Trace, current_span
from baton.types import NextStep, Usage

DEFAULT_REJECTION_MESSAGE = "Tool call was rejected by a human reviewer."
EXTRA_HANDOFF_ERROR = "Only one handoff per turn is allowed; this request was ignored."


@dataclass
class _TurnPlan:
    """Classified model response of one turn, not yet executed."""

    agent_name: str
    message: MessageOutput | None = None
    calls: list[ToolCall] = field(default_factory=list)
    handoff_call: ToolCall | None = None
    handoff_target: str | None = None
    handoff_reason: str | None = None
    ignored_handoffs: list[ToolCall] = field(default_factory=list)
    items: list[RunItem] = field(default_factory=list)

    @property
    def has_actions(self) -> bool:
        return bool(self.calls) or self.handoff_call is not None or bool(self.ignored_handoffs)


@dataclass
class RunState:
    """Working state of a run; returned to the caller when the run is interrupted.

    Approve or reject each pending call, then pass the state back to
    :meth:`Runner.run` to continue.
    """

    agent: Agent
    input_items: list[RunItem]
    history: list[RunItem]
    new_items: list[RunItem] = field(default_factory=list)
    uncommitted: list[RunItem] = field(default_factory=list)
    turn: int = 0
    usage: Usage = field(default_factory=Usage)
    guarded_agent: str | None = None
    pending: _TurnPlan | None = None
    approvals: dict[str, bool] = field(default_factory=dict)
    rejection_messages: dict[str, str] = field(default_factory=dict)
    needs_approval: list[ToolCall] = field(default_factory=list)

    @property
    def interruptions(self) -> list[ToolCall]:
        return list(self.needs_approval)

    @property
    def undecided(self) -> list[ToolCall]:
        return [call for call in self.needs_approval if call.call_id not in self.approvals]

    def approve(self, call_id: str) -> None:
        self._require_pending(call_id)
        self.approvals[call_id] = True
        self.rejection_messages.pop(call_id, None)

    def reject(self, call_id: str, message: str | None = None) -> None:
        self._require_pending(call_id)
        self.approvals[call_id] = False
        self.rejection_messages[call_id] = message or DEFAULT_REJECTION_MESSAGE

    def record(self, items: Sequence[RunItem]) -> None:
        self.history.extend(items)
        self.new_items.extend(items)
        self.uncommitted.extend(items)

    def _require_pending(self, call_id: str) -> None:
        if not any(call.call_id == call_id for call in self.needs_approval):
            raise KeyError(call_id)


@dataclass
class RunResult:
    input_items: list[RunItem]
    items: list[RunItem]
    final_output: Any
    last_agent: Agent
    next_step: NextStep
    trace: Trace
    usage: Usage
    turns: int
    state: RunState | None = None

    @property
    def interruptions(self) -> list[ToolCall]:
        return self.state.interruptions if self.state is not None else []


@dataclass
class _Run:
    """Collaborators wired for one run."""

    config: RunConfig
    context: RunContext
    hooks: HookRuntime
    guardrails: GuardrailEngine
    dispatcher: HandoffDispatcher
    invoker: ToolInvoker
    stream: StreamedRun | None = None


class Runner:
    """Drives agents through the turn loop."""

    def __init__(self, *, plugins: Sequence[object] = ()) -> None:
        self._plugins = list(plugins)

    async def run(
        self,
        agent: Agent,
        input: str | Sequence[RunItem] | RunState,
        config: RunConfig,
    ) -> RunResult:
        return await self._execute(agent, input, config, stream=None)

    def run_streamed(
        self,
        agent: Agent,
        input: str | Sequence[RunItem] | RunState,
        config: RunConfig,
    ) -> StreamedRun:
        """Start the run as a background task and return its event stream.

        Must be called from a running event loop.
        """

        stream = StreamedRun()
        task = asyncio.create_task(self._execute(agent, input, config, stream=stream), name=f"run:{agent.name}")
        stream._attach(task)
        return stream

    async def _execute(
        self,
        agent: Agent,
        input: str | Sequence[RunItem] | RunState,
        config: RunConfig,
        *,
        stream: StreamedRun | None,
    ) -> RunResult:
        config.validate()
        hooks = HookRuntime.from_plugins([*self._plugins, *config.hooks])
        recorder = config.recorder
        guardrails = GuardrailEngine(recorder)
        run = _Run(
            config=config,
            context=RunContext(context=config.context, session=config.session),
            hooks=hooks,
            guardrails=guardrails,
            dispatcher=HandoffDispatcher(recorder),
            invoker=ToolInvoker(
                recorder=recorder,
                guardrails=guardrails,
                hooks=hooks,
                policy=config.tool_error_policy,
                default_timeout_seconds=config.tool_timeout_seconds,
                abort_on_all_failures=config.abort_on_all_tool_failures,
            ),
            stream=stream,
        )

        try:
            async with asyncio.timeout(config.run_timeout_seconds) as deadline:
                return await self._run(agent, input, run)
        except TimeoutError as exc:
            if deadline.expired():
                error = RunTimeoutError("run", config.run_timeout_seconds or 0)
                await hooks.notify_error(stage="run", error=error, context=run.context)
                raise error from exc
            raise
        except Exception as exc:
            logger.warning("runner.run.failed agent={} error={}", agent.name, exc)
            await hooks.notify_error(stage="run", error=exc, context=run.context)
            raise

    async def _run(self, agent: Agent, input: str | Sequence[RunItem] | RunState, run: _Run) -> RunResult:
        resumed = isinstance(input, RunState)
        if isinstance(input, RunState):
            state = input
            if state.pending is None:
                raise ConfigurationError("RunState has no pending turn to resume")
            if state.undecided:
                names = ", ".join(call.call_id for call in state.undecided)
                raise ConfigurationError(f"RunState still has undecided approvals: {names}")
        else:
            agent.validate()
            input_items = coerce_input(input)
            history = await run.config.session.read(run.config.history_limit) if run.config.session else []
            state = RunState(
                agent=agent,
                input_items=list(input_items),
                history=[*history, *input_items],
                uncommitted=list(input_items),
            )
        run.context.usage = state.usage
        run.context.current_agent = state.agent

        logger.info(
            "runner.run.start agent={} resumed={} input_items={}",
            state.agent.name,
            resumed,
            len(state.input_items),
        )
        if not resumed:
            await run.hooks.notify("on_run_start", context=run.context, agent=state.agent, input_items=state.input_items)

        recorder = run.config.recorder
        with recorder.trace(
            run.config.workflow_name,
            state.agent.span_data(),
            metadata=run.config.trace_metadata,
        ) as trace:
            root = current_span()
            next_step, final_output = await self._run_agent(state, run)
            while next_step is NextStep.RUN_AGAIN:
                with recorder.span(state.agent.span_data(), parent=root):
                    next_step, final_output = await self._run_agent(state, run)

        logger.info(
            "runner.run.end agent={} next_step={} turns={} items={}",
            state.agent.name,
            next_step.value,
            state.turn,
            len(state.new_items),
        )
        return RunResult(
            input_items=list(state.input_items),
            items=list(state.new_items),
            final_output=final_output,
            last_agent=state.agent,
            next_step=next_step,
            trace=trace,
            usage=state.usage,
            turns=state.turn,
            state=state if next_step is NextStep.INTERRUPT else None,
        )

    async def _run_agent(self, state: RunState, run: _Run) -> tuple[NextStep, Any]:
        """Run turns for the active agent.

        Returns RUN_AGAIN after a handoff (the caller opens a new agent span),
        otherwise COMPLETE or INTERRUPT.
        """

        agent = state.agent
        run.context.current_agent = agent
        await run.hooks.notify("on_agent_start", context=run.context, agent=agent)
        registry = await self._build_registry(agent)

        if state.pending is not None:
            plan = state.pending
            state.pending = None
            outcome = await self._settle(plan, state, run, registry)
            if outcome is not None:
                return outcome

        while True:
            self._check_cancelled(run.config)
            if state.turn >= run.config.max_turns:
                raise MaxTurnsExceededError(run.config.max_turns)
            state.turn += 1
            run.context.turn = state.turn
            logger.info("runner.turn.start turn={} agent={}", state.turn, agent.name)

            if state.guarded_agent != agent.name:
                await run.guardrails.run_phase(
                    "input",
                    agent.input_guardrails,
                    list(state.input_items),
                    run.context,
                    agent=agent,
                )
                state.guarded_agent = agent.name

            response = await self._call_model(agent, state, run, registry)
            plan = self._classify(agent, response, run.dispatcher, registry)

            needs_approval = [
                call
                for call in plan.calls
                if (tool := registry.get(call.name)) is not None and tool.needs_approval
            ]
            if needs_approval:
                state.pending = plan
                state.needs_approval = needs_approval
                state.approvals = {}
                state.rejection_messages = {}
                logger.info(
                    "runner.turn.interrupted turn={} agent={} pending={}",
                    state.turn,
                    agent.name,
                    len(needs_approval),
                )
                return NextStep.INTERRUPT, None

            outcome = await self._settle(plan, state, run, registry)
            if outcome is not None:
                return outcome

    async def _settle(
        self,
        plan: _TurnPlan,
        state: RunState,
        run: _Run,
        registry: ToolRegistry,
    ) -> tuple[NextStep, Any] | None:
        """Execute one classified turn. ``None`` means run another turn with the same agent."""

        agent = state.agent
        if not plan.has_actions:
            assert plan.message is not None
            final_output = agent.output_type.parse(plan.message.content)
            await run.guardrails.run_phase("output", agent.output_guardrails, final_output, run.context, agent=agent)
            await self._commit(state, run, plan.items)
            await run.hooks.notify("on_agent_end", context=run.context, agent=agent, output=final_output)
            logger.info("runner.turn.end turn={} agent={} next_step=complete", state.turn, agent.name)
            return NextStep.COMPLETE, final_output

        result = await run.invoker.invoke(
            plan.calls,
            registry=registry,
            agent=agent,
            context=run.context,
            rejections={
                call_id: state.rejection_messages[call_id]
                for call_id, approved in state.approvals.items()
                if not approved
            },
        )
        # Calls that were in flight when the run was cancelled are discarded.
        self._check_cancelled(run.config)
        outputs: list[RunItem] = list(result.outputs)
        state.needs_approval = []
        state.approvals = {}
        state.rejection_messages = {}

        next_agent: Agent | None = None
        if plan.handoff_call is not None:
            assert plan.handoff_target is not None
            next_agent = run.dispatcher.dispatch(agent, HandoffRequest(plan.handoff_target, plan.handoff_reason))
            outputs.append(
                ToolOutput(
                    call_id=plan.handoff_call.call_id,
                    name=plan.handoff_call.name,
                    output=handoff_output(next_agent.name),
                )
            )
        for call in plan.ignored_handoffs:
            outputs.append(ToolOutput(call_id=call.call_id, name=call.name, error=EXTRA_HANDOFF_ERROR))

        await self._commit(state, run, [*plan.items, *outputs])

        if next_agent is not None:
            await run.hooks.notify("on_handoff", context=run.context, from_agent=agent, to_agent=next_agent)
            state.agent = next_agent
            state.guarded_agent = None
            if run.stream is not None:
                run.stream.emit(AgentUpdatedEvent(agent=next_agent))
            logger.info("runner.turn.end turn={} agent={} next_step=handoff", state.turn, agent.name)
            return NextStep.RUN_AGAIN, None

        logger.info("runner.turn.end turn={} agent={} next_step=run_again", state.turn, agent.name)
        return None

    async def _call_model(self, agent: Agent, state: RunState, run: _Run, registry: ToolRegistry) -> ModelResponse:
        config = run.config
        assert config.model is not None
        request = ModelRequest(
            agent_name=agent.name,
            instructions=await agent.get_instructions(run.context),
            tools=[*registry.schemas(), *(handoff.schema() for handoff in agent.handoff_list())],
            history=list(state.history),
            output_schema=agent.output_type.json_schema,
            model=agent.model,
        )
        include_data = config.recorder.include_sensitive_data
        data = GenerationSpanData(
            model=agent.model,
            input=dump_items(request.history) if include_data else None,
        )
        with config.recorder.span(data):
            try:
                async with asyncio.timeout(config.model_timeout_seconds) as deadline:
                    response = await config.model.get_response(request)
            except TimeoutError as exc:
                if deadline.expired():
                    raise RunTimeoutError("model call", config.model_timeout_seconds or 0) from exc
                raise
            state.usage.add(response.usage)
            if response.usage is not None:
                data.usage = response.usage.to_dict()
            if include_data:
                data.output = response.to_dict()
            if response.is_empty:
                raise ModelBehaviorError(f"Model returned an empty response for agent '{agent.name}'")
        return response

    @staticmethod
    def _classify(
        agent: Agent,
        response: ModelResponse,
        dispatcher: HandoffDispatcher,
        registry: ToolRegistry,
    ) -> _TurnPlan:
        plan = _TurnPlan(agent_name=agent.name)
        if response.message is not None:
            plan.message = MessageOutput(content=response.message, agent=agent.name)
            plan.items.append(plan.message)

        for request in response.tool_calls:
            call = ToolCall(call_id=request.call_id, name=request.name, arguments=dict(request.arguments), agent=agent.name)
            plan.items.append(call)
            if not registry.has(call.name) and dispatcher.is_handoff_call(agent, call.name):
                if plan.handoff_call is None:
                    plan.handoff_call = call
                    plan.handoff_target = call.name
                    reason = call.arguments.get("reason")
                    plan.handoff_reason = reason if isinstance(reason, str) else None
                else:
                    plan.ignored_handoffs.append(call)
                continue
            plan.calls.append(call)

        if response.handoff is not None:
            handoff = dispatcher.find(agent, response.handoff.target)
            call = ToolCall(
                call_id=f"handoff_{uuid.uuid4().hex[:12]}",
                name=handoff.tool_name,
                arguments={"reason": response.handoff.reason} if response.handoff.reason else {},
                agent=agent.name,
            )
            plan.items.append(call)
            if plan.handoff_call is None:
                plan.handoff_call = call
                plan.handoff_target = handoff.agent_name
                plan.handoff_reason = response.handoff.reason
            else:
                plan.ignored_handoffs.append(call)
        return plan

    @staticmethod
    async def _build_registry(agent: Agent) -> ToolRegistry:
        tools: list[Tool] = list(agent.tools)
        for source in agent.tool_sources:
            try:
                await source.connect()
                try:
                    tools.extend(await source.list_tools())
                finally:
                    await source.close()
            except NotSupportedError as exc:
                logger.warning("tool_source.unsupported agent={} source={} error={}", agent.name, source.name, exc)
        registry = ToolRegistry(tools)
        handoff_names = {handoff.tool_name for handoff in agent.handoff_list()}
        clashing = handoff_names.intersection(registry.names())
        if clashing:
            raise DuplicateToolError(f"Agent '{agent.name}' exposes tool '{sorted(clashing)[0]}' more than once")
        return registry

    @staticmethod
    async def _commit(state: RunState, run: _Run, settled: Sequence[RunItem]) -> None:
        """Record a settled turn, persist everything not yet stored and stream the turn's items."""

        state.record(settled)
        items = list(state.uncommitted)
        if items and run.config.session is not None:
            await run.config.session.append(items)
        state.uncommitted.clear()
        logger.debug("runner.session.commit items={}", len(items))
        if run.stream is not None:
            for item in settled:
                run.stream.emit(RunItemEvent(item=item, turn=state.turn))

    @staticmethod
    def _check_cancelled(config: RunConfig) -> None:
        if config.cancel_event is not None and config.cancel_event.is_set():
            raise RunCancelledError("Run was cancelled")
