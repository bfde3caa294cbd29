"""Tests for MicrophoneGuardian lifecycle and wiring."""

import asyncio

import pytest

from mic_guardian.core.guardian import (
    STATUS_IDLE,
    STATUS_INACTIVE,
    MicrophoneGuardian,
)
from mic_guardian.core.settings import GuardianSettings
from mic_guardian.core.types import Classification, EndReason
from tests.unit.fakes import FakeClock, FakeProvider, FakeSource, RecordingListener


def make_guardian(source=None, provider=None, **kwargs):
    settings = GuardianSettings(poll_interval=0.1, heartbeat_interval=0.5)
    return MicrophoneGuardian(
        source or FakeSource(),
        provider or FakeProvider(default=["arecord"]),
        settings,
        **kwargs,
    )


async def wait_until(predicate, timeout: float = 2.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.005)
    return predicate()


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_stop_idempotent(self):
        source = FakeSource()
        guardian = make_guardian(source)

        assert await guardian.start() is True
        assert await guardian.start() is False
        assert source.started == 1
        assert guardian.scheduler.is_running

        assert await guardian.stop() is True
        assert await guardian.stop() is False
        assert source.stopped == 1
        assert not guardian.scheduler.is_running
        await guardian.close()

    @pytest.mark.asyncio
    async def test_failed_source_start_rolls_back(self):
        guardian = make_guardian(FakeSource(fail_on_start=True))

        assert await guardian.start() is False
        assert not guardian.is_running
        assert not guardian.scheduler.is_running
        await guardian.close()

    @pytest.mark.asyncio
    async def test_cannot_start_after_close(self):
        guardian = make_guardian()
        await guardian.close()
        assert await guardian.start() is False

    @pytest.mark.asyncio
    async def test_restart_after_stop(self):
        source = FakeSource()
        guardian = make_guardian(source)

        await guardian.start()
        await guardian.stop()
        assert await guardian.start() is True
        source.push({"arecord"})
        assert guardian.monitor.is_recording
        await guardian.close()


class TestSessions:

    @pytest.mark.asyncio
    async def test_session_recorded_and_delivered(self):
        source = FakeSource()
        provider = FakeProvider(default=["arecord"])
        guardian = make_guardian(source, provider)
        listener = RecordingListener()
        guardian.subscribe(listener, name="test")

        await guardian.start()
        source.push({"arecord"})
        # opening a session requests an attribution poll
        assert await wait_until(lambda: guardian.monitor.status().snapshots_consulted >= 1)
        source.push(set())
        await asyncio.to_thread(guardian.sink.wait_idle, 2.0)

        history = guardian.history()
        assert len(history) == 1
        assert history[0].participant("arecord").classification is Classification.FOREGROUND
        assert listener.records == list(history)
        await guardian.close()

    @pytest.mark.asyncio
    async def test_stop_seals_open_session(self):
        source = FakeSource()
        clock = FakeClock()
        guardian = make_guardian(source, clock=clock)

        await guardian.start()
        source.push({"arecord"})
        clock.advance(750)
        await guardian.stop()

        record = guardian.history()[0]
        assert record.end_reason is EndReason.MONITORING_STOPPED
        assert record.duration_ms == 750
        assert not guardian.monitor.is_recording
        await guardian.close()

    @pytest.mark.asyncio
    async def test_clear_history(self):
        source = FakeSource()
        guardian = make_guardian(source)

        await guardian.start()
        source.push({"a"})
        source.push(set())
        source.push({"b"})
        source.push(set())

        assert [r.id for r in guardian.history()] == [2, 1]
        assert [r.id for r in guardian.history(limit=1)] == [2]
        assert guardian.clear_history() == 2
        assert guardian.history() == ()
        await guardian.close()

    @pytest.mark.asyncio
    async def test_provider_display_name_used(self):
        class NamedProvider(FakeProvider):
            def display_name(self, client_id):
                return {"arecord": "ALSA Recorder"}.get(client_id, client_id)

        source = FakeSource()
        guardian = make_guardian(source, NamedProvider(default=["arecord"]))

        await guardian.start()
        source.push({"arecord"})
        source.push(set())

        assert guardian.history()[0].app_name == "ALSA Recorder"
        await guardian.close()

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        guardian = make_guardian()
        handle = guardian.subscribe(RecordingListener())
        assert guardian.unsubscribe(handle) is True
        assert guardian.status()["listeners"] == 0
        await guardian.close()


class TestStatus:

    @pytest.mark.asyncio
    async def test_status_text_follows_state(self):
        source = FakeSource()
        guardian = make_guardian(source)

        assert guardian.status_text() == STATUS_INACTIVE
        await guardian.start()
        assert guardian.status_text() == STATUS_IDLE
        source.push({"a", "b"})
        assert guardian.status_text() == "Recording active: 2 app(s)"
        source.push(set())
        assert guardian.status_text() == STATUS_IDLE
        await guardian.close()
        assert guardian.status_text() == STATUS_INACTIVE

    @pytest.mark.asyncio
    async def test_status_dict(self):
        source = FakeSource()
        guardian = make_guardian(source)
        await guardian.start()
        source.push({"a"})

        status = guardian.status()
        assert status["monitoring"] is True
        assert status["monitor"]["state"] == "recording"
        assert status["monitor"]["participants"] == ["a"]
        assert status["history"]["capacity"] == 100
        assert status["uptimeSeconds"] >= 0
        assert "health" in status["attribution"]
        await guardian.close()
