import asyncio
import csv
import datetime
import io
import threading
from pathlib import Path
from typing import List

import aiofiles

from mic_guardian.core.logging_utils import get_module_logger
from mic_guardian.core.types import SessionRecord

logger = get_module_logger("SessionCsvWriter")

CSV_HEADER = [
    "session_id",
    "app_name",
    "started_at",
    "ended_at",
    "duration_ms",
    "client_id",
    "display_name",
    "classification",
    "end_reason",
]


def _format_ms(timestamp_ms: int) -> str:
    return datetime.datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


def record_rows(record: SessionRecord) -> List[List[str]]:
    """One CSV row per participant of ``record``."""
    common = [str(record.id), record.app_name, _format_ms(record.started_at), _format_ms(record.ended_at), str(record.duration_ms)]
    return [
        common + [p.client_id, p.display_name, p.classification.value, record.end_reason.value]
        for p in record.participants
    ]


class SessionCsvWriter:
    """Appends every sealed session to a CSV audit file.

    ``initialize`` must run on the event loop before the writer is subscribed;
    the writer itself is called from an EventSink worker thread.
    """

    def __init__(self, csv_path: Path):
        self.csv_path = Path(csv_path)
        self.initialized = False
        self._write_lock = threading.Lock()
        self.rows_written = 0

    async def initialize(self) -> None:
        await asyncio.to_thread(self.csv_path.parent.mkdir, parents=True, exist_ok=True)

        exists = await asyncio.to_thread(self.csv_path.exists)
        if not exists or (await asyncio.to_thread(self.csv_path.stat)).st_size == 0:
            buffer = io.StringIO()
            csv.writer(buffer).writerow(CSV_HEADER)
            async with aiofiles.open(self.csv_path, 'w', newline='') as f:
                await f.write(buffer.getvalue())

        self.initialized = True
        logger.info("Session history CSV: %s", self.csv_path)

    def __call__(self, record: SessionRecord) -> None:
        if not self.initialized:
            logger.warning("CSV writer not initialized, skipping session %d", record.id)
            return

        rows = record_rows(record)
        with self._write_lock:
            with open(self.csv_path, 'a', newline='', encoding='utf-8') as f:
                csv.writer(f).writerows(rows)
            self.rows_written += len(rows)

        logger.debug("Wrote session %d (%d row(s))", record.id, len(rows))
