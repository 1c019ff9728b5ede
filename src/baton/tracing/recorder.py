"""Trace recorder: opens spans, tracks the current one, exports finished traces."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from loguru import logger

from baton.tracing.exporters import TraceExporter
from baton.tracing.spans import AgentSpanData, Span, SpanData, SpanError, Trace

_current_trace: ContextVar[Trace | None] = ContextVar("baton_current_trace", default=None)
_current_span: ContextVar[Span | None] = ContextVar("baton_current_span", default=None)


def current_trace() -> Trace | None:
    return _current_trace.get()


def current_span() -> Span | None:
    return _current_span.get()


def current_trace_id() -> str:
    trace = _current_trace.get()
    return trace.trace_id if trace is not None else "-"


class TraceRecorder:
    """Explicit trace provider for one or more runs.

    A disabled recorder still hands out span objects so instrumented code stays
    uniform, but nothing is collected on the trace and nothing is exported.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        exporters: Iterable[TraceExporter] = (),
        include_sensitive_data: bool = True,
    ) -> None:
        self.enabled = enabled
        self.include_sensitive_data = include_sensitive_data
        self._exporters: list[TraceExporter] = list(exporters)

    @property
    def exporters(self) -> list[TraceExporter]:
        return list(self._exporters)

    def add_exporter(self, exporter: TraceExporter) -> None:
        self._exporters.append(exporter)

    @contextmanager
    def trace(
        self,
        name: str,
        root: AgentSpanData,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> Iterator[Trace]:
        """Open a trace whose root span is ``root``; export it when the block exits."""

        trace = Trace(name=name, metadata=dict(metadata or {}))
        trace_token = _current_trace.set(trace)
        # The root span must not inherit a span from an enclosing trace.
        span_token = _current_span.set(None)
        try:
            with self.span(root):
                yield trace
        finally:
            trace.end()
            _current_span.reset(span_token)
            _current_trace.reset(trace_token)
            self._export(trace)

    @contextmanager
    def span(self, data: SpanData, *, parent: Span | None = None) -> Iterator[Span]:
        """Open a child of ``parent`` (default: the current span) and close it exactly once."""

        trace = _current_trace.get()
        if parent is None:
            parent = _current_span.get()
        span = Span(
            trace_id=trace.trace_id if trace is not None else "-",
            data=data,
            parent_id=parent.span_id if parent is not None else None,
        )
        if self.enabled and trace is not None:
            trace.spans.append(span)

        token = _current_span.set(span)
        try:
            yield span
        except BaseException as exc:
            span.set_error(SpanError.from_exception(exc))
            raise
        finally:
            span.end()
            _current_span.reset(token)

    def _export(self, trace: Trace) -> None:
        if not self.enabled:
            return
        for exporter in self._exporters:
            try:
                exporter.export(trace)
            except Exception:
                logger.opt(exception=True).warning(
                    "trace.export.failed trace_id={} exporter={}",
                    trace.trace_id,
                    type(exporter).__name__,
                )
