"""Per-request telemetry for analysis and suggestion passes."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Iterable, Iterator, List, Optional

from .observability import StructuredLoggerAdapter, get_logger

TelemetryListener = Callable[[str, Dict[str, Any]], None]


@dataclass
class _TimingStats:
    count: int = 0
    total: float = 0.0
    min: float = float("inf")
    max: float = 0.0

    def add(self, duration: float) -> None:
        self.count += 1
        self.total += duration
        self.min = min(self.min, duration)
        self.max = max(self.max, duration)

    def as_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "total": self.total,
            "min": self.min,
            "max": self.max,
            "avg": self.total / self.count,
        }


@dataclass
class _Trace:
    trace_id: int = 0
    name: Optional[str] = None
    timings: Dict[str, _TimingStats] = field(default_factory=dict)
    counters: Dict[str, float] = field(default_factory=dict)
    events: Deque[Dict[str, Any]] = field(default_factory=deque)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "trace_id": self.trace_id,
            "name": self.name,
            "timings": {key: stats.as_dict() for key, stats in self.timings.items()},
            "counters": dict(self.counters),
            "events": [
                {**event, "metadata": dict(event["metadata"])} if "metadata" in event else dict(event)
                for event in self.events
            ],
            "metadata": dict(self.metadata),
        }


class StructuredTelemetry:
    """Collects timings, counters and metadata for the current trace.

    A trace is started per service call and replaces whatever the previous
    call collected. Listeners see every event as ``(event_type, payload)``.
    """

    def __init__(
        self,
        time_fn: Optional[Callable[[], float]] = None,
        *,
        max_events: int = 128,
        listeners: Optional[Iterable[TelemetryListener]] = None,
    ) -> None:
        self._clock = time_fn or time.perf_counter
        self._max_events = max(1, int(max_events))
        self._lock = threading.RLock()
        self._trace = _Trace()
        self._listeners: List[TelemetryListener] = list(listeners or [])

    def now(self) -> float:
        return float(self._clock())

    def _publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event_type, dict(payload))
            except Exception:
                # Observers never fail the request they watch.
                continue

    def start_trace(self, name: str) -> int:
        """Drop the previous trace and start collecting under ``name``."""

        with self._lock:
            trace_id = self._trace.trace_id + 1
            self._trace = _Trace(
                trace_id=trace_id,
                name=name,
                events=deque(maxlen=self._max_events),
                metadata={"trace_name": name, "start_time": self.now()},
            )

        self._publish("trace_started", {"trace_id": trace_id, "name": name})
        return trace_id

    def record_timing(
        self,
        name: str,
        duration: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        elapsed = max(0.0, float(duration))
        details = dict(metadata or {})
        event: Dict[str, Any] = {"name": name, "duration": elapsed}
        if details:
            event["metadata"] = details

        with self._lock:
            self._trace.timings.setdefault(name, _TimingStats()).add(elapsed)
            self._trace.events.append(event)

        self._publish("timing", {"name": name, "duration": elapsed, "metadata": details})

    @contextmanager
    def timer(
        self,
        name: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Time the block; callers may add result details to the yielded dict."""

        details: Dict[str, Any] = dict(metadata or {})
        started = self.now()
        try:
            yield details
        finally:
            self.record_timing(name, self.now() - started, details)

    def increment(self, name: str, amount: float = 1.0) -> None:
        delta = float(amount)
        with self._lock:
            total = self._trace.counters.get(name, 0.0) + delta
            self._trace.counters[name] = total

        self._publish("counter", {"name": name, "delta": delta, "value": total})

    def annotate(self, key: str, value: Any) -> None:
        with self._lock:
            self._trace.metadata[key] = value

        self._publish("metadata", {"key": key, "value": value})

    def snapshot(self) -> Dict[str, Any]:
        """Return a detached copy of the trace collected so far."""

        with self._lock:
            return self._trace.as_dict()

    # The active trace is also the latest one; kept for callers polling results.
    latest_snapshot = snapshot

    def add_listener(self, listener: TelemetryListener) -> None:
        with self._lock:
            self._listeners.append(listener)


class TelemetryLogger:
    """Listener writing each telemetry event to the ``rhyme_assist`` log."""

    def __init__(
        self,
        *,
        logger: Optional[StructuredLoggerAdapter] = None,
        level: int = logging.DEBUG,
        level_map: Optional[Dict[str, int]] = None,
    ) -> None:
        self._logger = logger or get_logger(__name__).bind(component="telemetry")
        self._level = level
        self._overrides = dict(level_map or {})

    def __call__(self, event_type: str, payload: Dict[str, Any]) -> None:
        level = self._overrides.get(event_type, self._level)
        if not self._logger.isEnabledFor(level):
            return

        label = next(
            (payload[key] for key in ("name", "key", "trace_id") if payload.get(key)),
            "event",
        )
        context = {"telemetry.event": event_type, **{str(k): v for k, v in payload.items()}}
        self._logger.log(level, f"Telemetry {event_type}: {label}", context=context)


__all__ = ["StructuredTelemetry", "TelemetryLogger", "TelemetryListener"]
