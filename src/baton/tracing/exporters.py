"""Trace exporters."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import logfire
from loguru import logger

from baton.tracing.spans import Trace


@runtime_checkable
class TraceExporter(Protocol):
    def export(self, trace: Trace) -> None: ...


class InMemoryExporter:
    """Keeps finished traces in memory, newest last."""

    def __init__(self) -> None:
        self.traces: list[Trace] = []

    def export(self, trace: Trace) -> None:
        self.traces.append(trace)

    @property
    def last(self) -> Trace | None:
        return self.traces[-1] if self.traces else None

    def clear(self) -> None:
        self.traces.clear()


class LoguruExporter:
    """Writes one log line per span."""

    def __init__(self, level: str = "INFO") -> None:
        self.level = level

    def export(self, trace: Trace) -> None:
        logger.log(
            self.level,
            "trace.end trace_id={} name={} spans={}",
            trace.trace_id,
            trace.name,
            len(trace.spans),
        )
        for span in trace.spans:
            duration = span.duration_ms
            logger.log(
                self.level,
                "trace.span trace_id={} span_id={} parent_id={} kind={} name={} duration={}ms error={}",
                trace.trace_id,
                span.span_id,
                span.parent_id or "-",
                span.kind.value,
                span.name,
                f"{duration:.3f}" if duration is not None else "-",
                span.error.message if span.error else "-",
            )


class LogfireExporter:
    """Emits one logfire event per span."""

    def export(self, trace: Trace) -> None:
        for span in trace.spans:
            payload = span.to_dict()
            if span.error is not None:
                logfire.error(
                    "Span {kind} {span_name} failed",
                    span_name=span.name,
                    workflow_name=trace.name,
                    **payload,
                )
                continue
            logfire.info(
                "Span {kind} {span_name}",
                span_name=span.name,
                workflow_name=trace.name,
                duration_ms=span.duration_ms,
                **payload,
            )
