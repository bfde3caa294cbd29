"""Tests for the CSV session history writer."""

import csv

import pytest

from mic_guardian.core.types import Classification, EndReason, ParticipantRecord, SessionRecord
from mic_guardian.listeners.csv_history import CSV_HEADER, SessionCsvWriter, record_rows


def make_record(session_id=1, end_reason=EndReason.IDLE):
    return SessionRecord(
        id=session_id,
        app_name="ALSA Recorder",
        started_at=1_700_000_000_000,
        ended_at=1_700_000_001_500,
        duration_ms=1_500,
        participants=(
            ParticipantRecord("arecord", "ALSA Recorder", Classification.FOREGROUND),
            ParticipantRecord("firefox", "Firefox", Classification.INACTIVE),
        ),
        end_reason=end_reason,
        primary_client="arecord",
    )


def read_rows(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


class TestRecordRows:

    def test_one_row_per_participant(self):
        rows = record_rows(make_record(end_reason=EndReason.MONITORING_STOPPED))

        assert len(rows) == 2
        assert rows[0][0] == "1"
        assert rows[0][4] == "1500"
        assert rows[0][5:] == ["arecord", "ALSA Recorder", "FOREGROUND", "monitoring_stopped"]
        assert rows[1][5:7] == ["firefox", "Firefox"]
        assert len(rows[0]) == len(CSV_HEADER)


class TestSessionCsvWriter:

    @pytest.mark.asyncio
    async def test_initialize_writes_header_once(self, tmp_path):
        path = tmp_path / "history" / "sessions.csv"
        writer = SessionCsvWriter(path)

        await writer.initialize()
        writer(make_record(1))
        await SessionCsvWriter(path).initialize()

        rows = read_rows(path)
        assert rows[0] == CSV_HEADER
        assert len(rows) == 3

    @pytest.mark.asyncio
    async def test_appends_sessions(self, tmp_path):
        path = tmp_path / "sessions.csv"
        writer = SessionCsvWriter(path)
        await writer.initialize()

        writer(make_record(1))
        writer(make_record(2))

        rows = read_rows(path)
        assert [row[0] for row in rows[1:]] == ["1", "1", "2", "2"]
        assert writer.rows_written == 4

    def test_uninitialized_writer_skips(self, tmp_path):
        path = tmp_path / "sessions.csv"
        writer = SessionCsvWriter(path)

        writer(make_record(1))

        assert not path.exists()
        assert writer.rows_written == 0
