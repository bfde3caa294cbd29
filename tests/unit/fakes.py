"""In-process fakes for the clock, provider, source and listeners."""

from __future__ import annotations

import threading
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Union

from mic_guardian.core.types import SessionRecord


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class FakeProvider:
    """AttributionProvider returning scripted results.

    Each entry of ``script`` is either a list of client ids or an exception
    instance to raise. Once the script runs out, ``error`` is raised if set,
    otherwise ``default`` is returned.
    """

    def __init__(
        self,
        script: Iterable[Union[Sequence[str], Exception]] = (),
        default: Sequence[str] = (),
        error: Optional[Exception] = None,
    ):
        self._script = list(script)
        self.default = list(default)
        self.error = error
        self.calls: List[tuple] = []
        self._lock = threading.Lock()
        self.polled = threading.Event()

    def poll(self, window_start: int, window_end: int) -> List[str]:
        with self._lock:
            self.calls.append((window_start, window_end))
            item = self._script.pop(0) if self._script else (self.error or self.default)
        self.polled.set()
        if isinstance(item, Exception):
            raise item
        return list(item)


class FakeSource:
    """AudioStateSource driven by the test via ``push``."""

    def __init__(self, fail_on_start: bool = False):
        self.callback: Optional[Callable[[FrozenSet[str], int], None]] = None
        self.started = 0
        self.stopped = 0
        self.fail_on_start = fail_on_start

    async def start(self, callback) -> None:
        if self.fail_on_start:
            raise RuntimeError("audio server unavailable")
        self.started += 1
        self.callback = callback

    async def stop(self) -> None:
        self.stopped += 1
        self.callback = None

    def push(self, clients: Iterable[str], timestamp: Optional[int] = None) -> None:
        assert self.callback is not None, "source not started"
        self.callback(frozenset(clients), timestamp)


class RecordingListener:
    """Collects delivered records; optionally raises or blocks."""

    def __init__(self, fail: bool = False, gate: Optional[threading.Event] = None):
        self.records: List[SessionRecord] = []
        self.fail = fail
        self.gate = gate
        self.calls = 0

    def __call__(self, record: SessionRecord) -> None:
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(5.0)
        if self.fail:
            raise RuntimeError(f"listener failure on {record.id}")
        self.records.append(record)

    @property
    def ids(self) -> List[int]:
        return [record.id for record in self.records]
