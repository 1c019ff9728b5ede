"""Span and trace records."""

from __future__ import annotations

import traceback
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar, Union

from baton.errors import GuardrailTripwireTriggered


class SpanKind(str, Enum):
    AGENT = "agent"
    GENERATION = "generation"
    FUNCTION = "function"
    HANDOFF = "handoff"
    CUSTOM = "custom"
    GUARDRAIL = "guardrail"


@dataclass
class AgentSpanData:
    kind: ClassVar[SpanKind] = SpanKind.AGENT

    name: str
    tools: list[str] = field(default_factory=list)
    handoffs: list[str] = field(default_factory=list)
    output_type: str = "text"


@dataclass
class GenerationSpanData:
    kind: ClassVar[SpanKind] = SpanKind.GENERATION

    name: str = "generation"
    model: str | None = None
    input: list[dict[str, Any]] | None = None
    output: dict[str, Any] | None = None
    usage: dict[str, int] | None = None


@dataclass
class FunctionSpanData:
    kind: ClassVar[SpanKind] = SpanKind.FUNCTION

    name: str
    call_id: str | None = None
    input: dict[str, Any] | None = None
    output: Any = None


@dataclass
class HandoffSpanData:
    kind: ClassVar[SpanKind] = SpanKind.HANDOFF

    from_agent: str
    to_agent: str | None = None
    reason: str | None = None

    @property
    def name(self) -> str:
        return f"{self.from_agent}->{self.to_agent}"


@dataclass
class GuardrailSpanData:
    kind: ClassVar[SpanKind] = SpanKind.GUARDRAIL

    name: str
    phase: str
    triggered: bool = False
    behavior: str = "allow"
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class CustomSpanData:
    kind: ClassVar[SpanKind] = SpanKind.CUSTOM

    name: str
    data: dict[str, Any] = field(default_factory=dict)


SpanData = Union[
    AgentSpanData,
    GenerationSpanData,
    FunctionSpanData,
    HandoffSpanData,
    GuardrailSpanData,
    CustomSpanData,
]


@dataclass(frozen=True)
class SpanError:
    """Error attached to a span: a message plus the exception type and top frames."""

    message: str
    data: dict[str, Any] = field(default_factory=dict)

    STACK_DEPTH: ClassVar[int] = 5

    @classmethod
    def from_exception(cls, exc: BaseException) -> SpanError:
        frames = traceback.format_tb(exc.__traceback__)[: cls.STACK_DEPTH]
        data: dict[str, Any] = {"type": type(exc).__name__, "stack": [frame.strip() for frame in frames]}
        if isinstance(exc, GuardrailTripwireTriggered):
            data["guardrail"] = {
                "name": exc.guardrail_name,
                "phase": exc.phase,
                "reason": exc.reason,
                "metadata": dict(exc.metadata),
            }
        return cls(message=str(exc) or type(exc).__name__, data=data)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Span:
    trace_id: str
    data: SpanData
    parent_id: str | None = None
    span_id: str = field(default_factory=lambda: _new_id("span"))
    started_at: datetime = field(default_factory=_now)
    ended_at: datetime | None = None
    error: SpanError | None = None

    @property
    def kind(self) -> SpanKind:
        return self.data.kind

    @property
    def name(self) -> str:
        return self.data.name

    @property
    def closed(self) -> bool:
        return self.ended_at is not None

    @property
    def duration_ms(self) -> float | None:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds() * 1000

    def end(self) -> None:
        if self.ended_at is not None:
            return
        self.ended_at = max(_now(), self.started_at)

    def set_error(self, error: SpanError) -> None:
        self.error = error

    def to_dict(self) -> dict[str, Any]:
        return {
            "object": "trace.span",
            "id": self.span_id,
            "trace_id": self.trace_id,
            "parent_id": self.parent_id,
            "kind": self.kind.value,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "span_data": {"type": self.kind.value, **asdict(self.data)},
            "error": asdict(self.error) if self.error else None,
        }


@dataclass
class Trace:
    name: str
    trace_id: str = field(default_factory=lambda: _new_id("trace"))
    metadata: dict[str, Any] = field(default_factory=dict)
    spans: list[Span] = field(default_factory=list)
    started_at: datetime = field(default_factory=_now)
    ended_at: datetime | None = None

    @property
    def root(self) -> Span | None:
        for span in self.spans:
            if span.parent_id is None:
                return span
        return None

    def children(self, span: Span) -> list[Span]:
        return [child for child in self.spans if child.parent_id == span.span_id]

    def spans_of(self, kind: SpanKind) -> list[Span]:
        return [span for span in self.spans if span.kind is kind]

    def end(self) -> None:
        if self.ended_at is None:
            self.ended_at = _now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "object": "trace",
            "id": self.trace_id,
            "workflow_name": self.name,
            "metadata": dict(self.metadata),
            "spans": [span.to_dict() for span in self.spans],
        }
