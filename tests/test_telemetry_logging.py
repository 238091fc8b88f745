import logging

from rhyme_assist.utils.observability import create_counter, get_logger
from rhyme_assist.utils.telemetry import StructuredTelemetry, TelemetryLogger


class FakeClock:
    """Deterministic clock used to drive telemetry timers in tests."""

    def __init__(self, step: float = 0.5) -> None:
        self._current = 0.0
        self._step = step

    def __call__(self) -> float:
        value = self._current
        self._current += self._step
        return value


def test_structured_telemetry_emits_logging_events(caplog):
    telemetry = StructuredTelemetry()
    telemetry.add_listener(TelemetryLogger())

    caplog.set_level(logging.DEBUG, logger="rhyme_assist.utils.telemetry")

    telemetry.start_trace("test-trace")
    with telemetry.timer("phase"):
        pass
    telemetry.increment("editor_assist.completed")
    telemetry.annotate("result.count", 3)

    messages = [record.getMessage() for record in caplog.records]
    assert any("Telemetry trace_started: test-trace" in message for message in messages)
    assert any("Telemetry timing: phase" in message for message in messages)
    assert any("Telemetry counter: editor_assist.completed" in message for message in messages)
    assert any("Telemetry metadata: result.count" in message for message in messages)


def test_timer_records_duration_and_metadata():
    telemetry = StructuredTelemetry(time_fn=FakeClock(step=0.5))
    telemetry.start_trace("editor_assist")

    with telemetry.timer("suggestions.rank") as payload:
        payload["returned"] = 4

    snapshot = telemetry.snapshot()
    timing = snapshot["timings"]["suggestions.rank"]
    assert timing["count"] == 1
    assert timing["total"] == 0.5
    assert snapshot["events"][-1]["metadata"] == {"returned": 4}


def test_start_trace_resets_previous_state():
    telemetry = StructuredTelemetry()
    telemetry.start_trace("first")
    telemetry.increment("calls")

    telemetry.start_trace("second")

    assert telemetry.snapshot()["counters"] == {}
    assert telemetry.latest_snapshot()["name"] == "second"


def test_broken_listener_does_not_break_trace():
    def broken(event_type, payload):
        raise RuntimeError("listener failure")

    telemetry = StructuredTelemetry(listeners=[broken])
    telemetry.start_trace("resilient")
    telemetry.increment("calls", 2)

    assert telemetry.snapshot()["counters"] == {"calls": 2.0}


def test_structured_logger_appends_bound_context(caplog):
    caplog.set_level(logging.INFO, logger="rhyme_assist.tests")
    logger = get_logger("rhyme_assist.tests").bind(component="probe")

    logger.info("Index ready", context={"words": 9})

    assert caplog.records[-1].getMessage() == 'Index ready | {"component": "probe", "words": 9}'


def test_create_counter_reuses_registered_collector():
    first = create_counter("rhyme_assist_test_events_total", "Events seen by tests.")
    second = create_counter("rhyme_assist_test_events_total", "Events seen by tests.")

    assert first is second
