"""Structured logging, Prometheus metrics and tracing spans for the engine.

Metrics are registered once per process. Asking for a metric name that is
already registered hands back the existing collector, so modules can be
imported more than once (test runners do this) without a duplicate error.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Type, TypeVar

from opentelemetry import trace
from prometheus_client import REGISTRY, Counter, Histogram

_TRACER_NAME = "rhyme_assist"
_SPAN_TYPES = (str, bool, int, float)

_MetricT = TypeVar("_MetricT", Counter, Histogram)


def _render_context(context: Mapping[str, Any]) -> str:
    try:
        return json.dumps(context, sort_keys=True, default=str)
    except TypeError:
        # Mixed key types cannot be sorted.
        return json.dumps({str(key): str(value) for key, value in context.items()})


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that renders bound and per-call context as JSON.

    ``logger.bind(component="index")`` returns a new adapter carrying the
    extra fields; a call may add more with ``context={...}``. The combined
    fields are appended to the message as ``msg | {...}``.
    """

    def bind(self, **fields: Any) -> "StructuredLoggerAdapter":
        return StructuredLoggerAdapter(self.logger, {**(self.extra or {}), **fields})

    def process(self, msg: str, kwargs: Dict[str, Any]):
        fields = dict(self.extra or {})
        extra_fields = kwargs.pop("context", None)
        if isinstance(extra_fields, dict):
            fields.update(extra_fields)
        if not fields:
            return msg, kwargs
        return f"{msg} | {_render_context(fields)}", kwargs


def get_logger(name: str, **fields: Any) -> StructuredLoggerAdapter:
    """Return the structured adapter for ``name`` with ``fields`` bound."""

    return StructuredLoggerAdapter(logging.getLogger(name), fields)


def _register(kind: Type[_MetricT], name: str, documentation: str, label_names) -> _MetricT:
    try:
        return kind(name, documentation, labelnames=tuple(label_names or ()))
    except ValueError:
        # Counters are registered without their ``_total`` suffix.
        collectors = getattr(REGISTRY, "_names_to_collectors", {})
        existing = collectors.get(name) or collectors.get(name.removesuffix("_total"))
        if not isinstance(existing, kind):
            raise
        return existing


def create_counter(
    name: str,
    documentation: str,
    label_names: Optional[Iterable[str]] = None,
) -> Counter:
    """Return the process-wide Prometheus counter called ``name``."""

    return _register(Counter, name, documentation, label_names)


def create_histogram(
    name: str,
    documentation: str,
    label_names: Optional[Iterable[str]] = None,
) -> Histogram:
    """Return the process-wide Prometheus histogram called ``name``."""

    return _register(Histogram, name, documentation, label_names)


@contextmanager
def observe_duration(histogram: Histogram) -> Iterator[None]:
    """Observe the wall-clock seconds spent in the block on ``histogram``."""

    started = time.perf_counter()
    try:
        yield
    finally:
        histogram.observe(time.perf_counter() - started)


@contextmanager
def start_span(name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
    """Run the block inside the OpenTelemetry span ``name``."""

    with trace.get_tracer(_TRACER_NAME).start_as_current_span(name) as span:
        add_span_attributes(span, attributes or {})
        yield span


def add_span_attributes(span: Any, attributes: Mapping[str, Any]) -> None:
    """Set ``attributes`` on ``span``; ``None`` values are skipped."""

    if span is None:
        return
    for key, value in attributes.items():
        if value is None or not isinstance(key, str):
            continue
        span.set_attribute(key, value if isinstance(value, _SPAN_TYPES) else str(value))


def record_exception(span: Any, error: BaseException) -> None:
    """Attach ``error`` to ``span`` and flag the span as failed."""

    if span is not None:
        span.record_exception(error)
        span.set_attribute("error", True)


__all__ = [
    "StructuredLoggerAdapter",
    "get_logger",
    "create_counter",
    "create_histogram",
    "observe_duration",
    "start_span",
    "add_span_attributes",
    "record_exception",
]
