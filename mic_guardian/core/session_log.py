"""Bounded, newest-first history of sealed sessions."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Iterator, Optional, Tuple

from mic_guardian.core.logging_utils import get_module_logger

from .types import SessionRecord

logger = get_module_logger("SessionLog")

DEFAULT_CAPACITY = 100


class SessionLog:
    """In-memory ring of SessionRecords.

    The newest record is always at index 0. When the log is full the
    oldest record is evicted. Readers only ever get an immutable tuple
    copy, so iteration never races with ``append`` or ``clear``.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._records: Deque[SessionRecord] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._total_appended = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def total_appended(self) -> int:
        """Records ever appended, including evicted and cleared ones."""
        with self._lock:
            return self._total_appended

    def append(self, record: SessionRecord) -> None:
        with self._lock:
            evicted = len(self._records) == self._capacity
            self._records.appendleft(record)
            self._total_appended += 1
        if evicted:
            logger.debug("Log full, evicted oldest record (capacity=%d)", self._capacity)

    def clear(self) -> int:
        """Empty the log atomically; returns how many records were dropped."""
        with self._lock:
            dropped = len(self._records)
            self._records.clear()
        logger.info("Cleared %d session record(s)", dropped)
        return dropped

    def snapshot(self, limit: Optional[int] = None) -> Tuple[SessionRecord, ...]:
        with self._lock:
            records = tuple(self._records)
        if limit is not None:
            records = records[:max(0, limit)]
        return records

    def latest(self) -> Optional[SessionRecord]:
        with self._lock:
            return self._records[0] if self._records else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[SessionRecord]:
        return iter(self.snapshot())
