"""Tests for the command-line entry point wiring."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from mic_guardian.app import main as app_main
from mic_guardian.core.guardian import MicrophoneGuardian
from mic_guardian.core.settings import GuardianSettings
from tests.unit.fakes import FakeProvider, FakeSource


def fake_guardian_factory(source):
    def build(settings):
        return MicrophoneGuardian(source, FakeProvider(default=["arecord"]), settings)
    return build


class TestSettingsFromCommandLine:

    def test_config_file_and_overrides(self, tmp_path):
        config = tmp_path / "config.txt"
        config.write_text("poll_interval = 0.5\napi_port = 9100\n", encoding="utf-8")

        args = app_main.parse_args(["--config", str(config), "--api-port", "9200", "--no-api"])
        settings = app_main.build_settings(args)

        assert settings.poll_interval == 0.5
        assert settings.api_port == 9200
        assert settings.api_enabled is False


class TestRunGuardian:

    @pytest.mark.asyncio
    async def test_runs_until_stop_event(self, tmp_path):
        source = FakeSource()
        settings = GuardianSettings(api_enabled=False, history_csv=tmp_path / "sessions.csv")
        stop_event = asyncio.Event()

        async def drive():
            while source.callback is None:
                await asyncio.sleep(0.005)
            source.push({"arecord"})
            source.push(set())
            stop_event.set()

        with patch.object(app_main, "build_guardian", side_effect=fake_guardian_factory(source)):
            await asyncio.gather(app_main.run_guardian(settings, stop_event), drive())

        assert source.started == 1
        assert source.stopped == 1
        lines = (tmp_path / "sessions.csv").read_text(encoding="utf-8").splitlines()
        assert lines[0].startswith("session_id,")
        assert len(lines) == 2

    @pytest.mark.asyncio
    async def test_source_failure_returns_cleanly(self):
        source = FakeSource(fail_on_start=True)
        settings = GuardianSettings(api_enabled=False)

        with patch.object(app_main, "build_guardian", side_effect=fake_guardian_factory(source)):
            await asyncio.wait_for(app_main.run_guardian(settings, asyncio.Event()), timeout=5.0)

        assert source.started == 0

    @pytest.mark.asyncio
    async def test_api_server_started_and_stopped(self):
        source = FakeSource()
        settings = GuardianSettings(api_port=0)
        stop_event = asyncio.Event()
        stop_event.set()

        with patch.object(app_main, "build_guardian", side_effect=fake_guardian_factory(source)), \
                patch.object(app_main.APIServer, "start", new_callable=AsyncMock) as start, \
                patch.object(app_main.APIServer, "stop", new_callable=AsyncMock) as stop:
            await app_main.run_guardian(settings, stop_event)

        start.assert_awaited_once()
        stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_api_bind_failure_keeps_monitoring(self):
        source = FakeSource()
        settings = GuardianSettings(api_port=0)
        stop_event = asyncio.Event()
        stop_event.set()

        with patch.object(app_main, "build_guardian", side_effect=fake_guardian_factory(source)), \
                patch.object(app_main.APIServer, "start", new_callable=AsyncMock,
                             side_effect=OSError("address in use")), \
                patch.object(app_main.APIServer, "stop", new_callable=AsyncMock) as stop:
            await app_main.run_guardian(settings, stop_event)

        assert source.started == 1
        stop.assert_not_awaited()


class TestRun:

    def test_run_returns_zero(self, tmp_path):
        config = tmp_path / "config.txt"
        config.write_text("api_enabled = false\n", encoding="utf-8")

        with patch.object(app_main, "run_guardian", new_callable=AsyncMock) as run_guardian, \
                patch.object(app_main, "configure_logging"), \
                patch.object(app_main, "ensure_directories"):
            assert app_main.run(["--config", str(config)]) == 0

        settings = run_guardian.await_args.args[0]
        assert settings.api_enabled is False

    def test_keyboard_interrupt_exit_code(self):
        with patch.object(app_main, "main"), \
                patch.object(app_main.asyncio, "run", side_effect=KeyboardInterrupt):
            assert app_main.run([]) == 130
