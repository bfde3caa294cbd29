"""Pytest fixtures for API unit tests.

The API runs against a real MicrophoneGuardian wired to in-process fakes, so
route tests exercise the same history and lifecycle code the daemon uses.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, TypeVar

import pytest
from aiohttp import web

from mic_guardian.api.controller import APIController
from mic_guardian.api.server import create_app
from mic_guardian.core.guardian import MicrophoneGuardian
from mic_guardian.core.settings import GuardianSettings
from tests.unit.fakes import FakeClock, FakeProvider, FakeSource


T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine synchronously for testing."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class GuardianHarness:
    """A guardian plus the fakes driving it."""

    def __init__(self, fail_on_start: bool = False):
        self.source = FakeSource(fail_on_start=fail_on_start)
        self.provider = FakeProvider(default=["arecord"])
        self.clock = FakeClock()
        self.guardian = MicrophoneGuardian(
            self.source,
            self.provider,
            GuardianSettings(poll_interval=30.0, heartbeat_interval=30.0),
            clock=self.clock,
        )
        self.controller = APIController(self.guardian)

    def record_session(self, *clients: str, duration_ms: int = 1_000) -> None:
        """Open and close one session through the source callback."""
        self.source.push(set(clients))
        self.clock.advance(duration_ms)
        self.source.push(set())


def create_test_app(controller: APIController) -> web.Application:
    return create_app(controller, localhost_only=True)


@pytest.fixture
def harness() -> GuardianHarness:
    return GuardianHarness()


@pytest.fixture
def failing_harness() -> GuardianHarness:
    return GuardianHarness(fail_on_start=True)
