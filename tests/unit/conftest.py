"""Unit test fixtures for isolated, fast test execution.

Everything here runs in-process without PulseAudio or real process scans.
The fakes themselves live in ``tests/unit/fakes.py`` so test modules can
import them directly.
"""

from __future__ import annotations

import pytest

from mic_guardian.core.event_sink import EventSink
from mic_guardian.core.session_log import SessionLog
from mic_guardian.core.session_monitor import SessionMonitor
from tests.unit.fakes import FakeClock, RecordingListener


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_log() -> SessionLog:
    return SessionLog(capacity=100)


@pytest.fixture
def sink():
    sink = EventSink()
    yield sink
    sink.close(timeout=2.0)


@pytest.fixture
def listener(sink) -> RecordingListener:
    collected = RecordingListener()
    sink.subscribe(collected, name="collector")
    return collected


@pytest.fixture
def monitor(session_log, sink, clock) -> SessionMonitor:
    return SessionMonitor(session_log, sink, clock=clock)
