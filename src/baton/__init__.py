"""Baton - pass the turn, keep the trace."""

from baton.agent import Agent
from baton.config import RunConfig, Settings
from baton.context import RunContext, ToolContext
from baton.errors import (
    AgentConfigurationError,
    AllToolCallsFailedError,
    BatonError,
    ConfigurationError,
    DuplicateToolError,
    GuardrailExecutionError,
    GuardrailTripwireTriggered,
    HandoffResolutionError,
    InputGuardrailTripwireTriggered,
    MaxTurnsExceededError,
    ModelBehaviorError,
    NotSupportedError,
    OutputGuardrailTripwireTriggered,
    RunCancelledError,
    RunTimeoutError,
    SessionError,
    ToolCallError,
    ToolInputGuardrailTripwireTriggered,
    ToolOutputGuardrailTripwireTriggered,
)
from baton.guardrails import (
    Guardrail,
    GuardrailEngine,
    GuardrailResult,
    ToolGuardrailBehavior,
    ToolInputPayload,
    ToolOutputPayload,
    guardrail,
)
from baton.handoffs import Handoff, HandoffDispatcher
from baton.hookspecs import hookimpl
from baton.items import MessageInput, MessageOutput, RunItem, ToolCall, ToolOutput, dump_items, load_items
from baton.model import HandoffRequest, ModelAdapter, ModelRequest, ModelResponse, ToolCallRequest
from baton.runner import Runner, RunResult, RunState
from baton.session import FileSession, MemorySession, Session, SQLiteSession
from baton.stream import AgentUpdatedEvent, RunItemEvent, StreamedRun, StreamEvent
from baton.tools import StaticToolSource, Tool, ToolSource, UnsupportedToolSource, tool_from_model
from baton.tracing import InMemoryExporter, LogfireExporter, LoguruExporter, TraceRecorder
from baton.types import TEXT_OUTPUT, NextStep, StructuredOutput, ToolErrorPolicy, Usage

__version__ = "0.1.0"

__all__ = [
    "TEXT_OUTPUT",
    "Agent",
    "AgentConfigurationError",
    "AgentUpdatedEvent",
    "AllToolCallsFailedError",
    "BatonError",
    "ConfigurationError",
    "DuplicateToolError",
    "FileSession",
    "Guardrail",
    "GuardrailEngine",
    "GuardrailExecutionError",
    "GuardrailResult",
    "GuardrailTripwireTriggered",
    "Handoff",
    "HandoffDispatcher",
    "HandoffRequest",
    "HandoffResolutionError",
    "InMemoryExporter",
    "InputGuardrailTripwireTriggered",
    "LogfireExporter",
    "LoguruExporter",
    "MaxTurnsExceededError",
    "MemorySession",
    "MessageInput",
    "MessageOutput",
    "ModelAdapter",
    "ModelBehaviorError",
    "ModelRequest",
    "ModelResponse",
    "NextStep",
    "NotSupportedError",
    "OutputGuardrailTripwireTriggered",
    "RunCancelledError",
    "RunConfig",
    "RunContext",
    "RunItem",
    "RunItemEvent",
    "RunResult",
    "RunState",
    "RunTimeoutError",
    "Runner",
    "SQLiteSession",
    "Session",
    "SessionError",
    "Settings",
    "StaticToolSource",
    "StreamEvent",
    "StreamedRun",
    "StructuredOutput",
    "Tool",
    "ToolCall",
    "ToolCallError",
    "ToolCallRequest",
    "ToolContext",
    "ToolErrorPolicy",
    "ToolGuardrailBehavior",
    "ToolInputGuardrailTripwireTriggered",
    "ToolInputPayload",
    "ToolOutput",
    "ToolOutputGuardrailTripwireTriggered",
    "ToolOutputPayload",
    "ToolSource",
    "TraceRecorder",
    "Usage",
    "UnsupportedToolSource",
    "__version__",
    "dump_items",
    "guardrail",
    "hookimpl",
    "load_items",
    "tool_from_model",
]
