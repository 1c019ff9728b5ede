"""Exception types for Baton runs."""

from __future__ import annotations

from typing import Any


class BatonError(Exception):
    """Base exception for Baton."""


class ConfigurationError(BatonError):
    """Base exception for agent and run configuration errors."""


class AgentConfigurationError(ConfigurationError):
    """Raised when an agent definition is missing required fields."""


class DuplicateToolError(ConfigurationError):
    """Raised when two tools visible to the model share a name."""


class NotSupportedError(BatonError):
    """Raised by a collaborator capability that is not available."""

    def __init__(self, capability: str, detail: str | None = None) -> None:
        message = f"{capability} is not supported"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.capability = capability


class SessionError(BatonError):
    """Raised when a session backend fails to read or write."""


class ModelBehaviorError(BatonError):
    """Raised when the model returns something the runner cannot use."""


class MaxTurnsExceededError(BatonError):
    """Raised when a run does not finish within its turn ceiling."""

    def __init__(self, max_turns: int) -> None:
        super().__init__(f"Run exceeded max_turns limit of {max_turns}")
        self.max_turns = max_turns


class RunTimeoutError(BatonError):
    """Raised when a run or model call misses its deadline."""

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        super().__init__(f"{operation} timed out after {timeout_seconds}s")
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class RunCancelledError(BatonError):
    """Raised when a run observes its cancel event between turns."""


class HandoffResolutionError(BatonError):
    """Raised when a handoff names a target the current agent cannot reach."""

    def __init__(self, source_agent: str, target: str, reason: str = "unknown handoff target") -> None:
        super().__init__(f"Agent '{source_agent}' cannot hand off to '{target}': {reason}")
        self.source_agent = source_agent
        self.target = target


class ToolCallError(BatonError):
    """Failure of exactly one tool call."""

    def __init__(self, tool_name: str, call_id: str, message: str, *, timed_out: bool = False) -> None:
        super().__init__(f"Tool '{tool_name}' (call {call_id}) failed: {message}")
        self.tool_name = tool_name
        self.call_id = call_id
        self.detail = message
        self.timed_out = timed_out


class AllToolCallsFailedError(BatonError):
    """Raised when every tool call of a turn failed."""

    def __init__(self, errors: list[ToolCallError]) -> None:
        names = ", ".join(error.tool_name for error in errors)
        super().__init__(f"All {len(errors)} tool call(s) of the turn failed: {names}")
        self.errors = errors


class GuardrailExecutionError(BatonError):
    """Raised when a guardrail check itself crashes."""

    def __init__(self, guardrail_name: str, phase: str) -> None:
        super().__init__(f"Guardrail '{guardrail_name}' failed during {phase} phase")
        self.guardrail_name = guardrail_name
        self.phase = phase


class GuardrailTripwireTriggered(BatonError):
    """Base exception for a tripped guardrail."""

    phase = "unknown"

    def __init__(self, guardrail_name: str, reason: str | None = None, metadata: dict[str, Any] | None = None) -> None:
        message = f"{self.phase.capitalize()} guardrail '{guardrail_name}' tripwire triggered"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.guardrail_name = guardrail_name
        self.reason = reason
        self.metadata = dict(metadata or {})


class InputGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    phase = "input"


class OutputGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    phase = "output"


class ToolOutputGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    phase = "tool_output"


class ToolInputGuardrailTripwireTriggered(GuardrailTripwireTriggered):
    phase = "tool_input"
