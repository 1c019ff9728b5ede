"""Trace and span recording."""

from baton.tracing.exporters import InMemoryExporter, LogfireExporter, LoguruExporter, TraceExporter
from baton.tracing.recorder import TraceRecorder, current_span, current_trace, current_trace_id
from baton.tracing.spans import (
    AgentSpanData,
    CustomSpanData,
    FunctionSpanData,
    GenerationSpanData,
    GuardrailSpanData,
    HandoffSpanData,
    Span,
    SpanData,
    SpanError,
    SpanKind,
    Trace,
)

__all__ = [
    "AgentSpanData",
    "CustomSpanData",
    "FunctionSpanData",
    "GenerationSpanData",
    "GuardrailSpanData",
    "HandoffSpanData",
    "InMemoryExporter",
    "LogfireExporter",
    "LoguruExporter",
    "Span",
    "SpanData",
    "SpanError",
    "SpanKind",
    "Trace",
    "TraceExporter",
    "TraceRecorder",
    "current_span",
    "current_trace",
    "current_trace_id",
]
