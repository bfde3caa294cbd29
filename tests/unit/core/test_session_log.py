"""Tests for SessionLog: capacity, ordering and atomic clear."""

import threading

import pytest

from mic_guardian.core.session_log import SessionLog
from mic_guardian.core.types import Classification, ParticipantRecord, SessionRecord


def make_record(session_id: int, started_at: int = 0, duration: int = 10) -> SessionRecord:
    return SessionRecord(
        id=session_id,
        app_name="arecord",
        started_at=started_at,
        ended_at=started_at + duration,
        duration_ms=duration,
        participants=(ParticipantRecord("arecord", "arecord", Classification.INACTIVE),),
    )


class TestSessionLogBasics:

    def test_starts_empty(self):
        log = SessionLog()
        assert len(log) == 0
        assert log.snapshot() == ()
        assert log.latest() is None
        assert log.capacity == 100

    def test_newest_first(self):
        log = SessionLog()
        for i in range(1, 4):
            log.append(make_record(i))

        assert [r.id for r in log.snapshot()] == [3, 2, 1]
        assert log.latest().id == 3

    def test_snapshot_limit(self):
        log = SessionLog()
        for i in range(1, 6):
            log.append(make_record(i))

        assert [r.id for r in log.snapshot(limit=2)] == [5, 4]
        assert log.snapshot(limit=0) == ()

    def test_snapshot_is_immutable_copy(self):
        log = SessionLog()
        log.append(make_record(1))
        snapshot = log.snapshot()

        log.append(make_record(2))

        assert isinstance(snapshot, tuple)
        assert [r.id for r in snapshot] == [1]

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            SessionLog(capacity=0)


class TestSessionLogCapacity:

    def test_keeps_most_recent_hundred(self):
        log = SessionLog(capacity=100)
        for i in range(1, 251):
            log.append(make_record(i))

        records = log.snapshot()
        assert len(records) == 100
        assert [r.id for r in records] == list(range(250, 150, -1))
        assert log.total_appended == 250

    def test_small_capacity_evicts_oldest(self):
        log = SessionLog(capacity=2)
        for i in range(1, 4):
            log.append(make_record(i))

        assert [r.id for r in log.snapshot()] == [3, 2]


class TestSessionLogClear:

    def test_clear_then_snapshot_is_empty(self):
        log = SessionLog()
        for i in range(10):
            log.append(make_record(i))

        assert log.clear() == 10
        assert log.snapshot() == ()
        assert len(log) == 0

    def test_clear_after_concurrent_appends(self):
        log = SessionLog()
        threads = [
            threading.Thread(target=lambda base=base: [log.append(make_record(base + i)) for i in range(50)])
            for base in range(0, 400, 100)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        log.clear()
        assert log.snapshot() == ()

    def test_append_after_clear(self):
        log = SessionLog()
        log.append(make_record(1))
        log.clear()
        log.append(make_record(2))

        assert [r.id for r in log] == [2]
