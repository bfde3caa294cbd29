"""Attribution from per-process CPU activity.

Each poll samples the CPU time of every visible process. A process counts as
active inside ``[window_start, window_end]`` when its CPU time advanced within
the window. Results are ordered by the last sample at which the process was
seen working (freshest first), so the first entry plays the role of the
foreground application.
"""

import os
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional, Tuple

import psutil

from mic_guardian.core.logging_utils import get_module_logger
from mic_guardian.core.types import now_ms

logger = get_module_logger("ProcessActivityProvider")

_ATTRS = ['pid', 'name', 'create_time', 'cpu_times']


@dataclass
class _ProcessTrack:
    name: str
    samples: Deque[Tuple[int, float]] = field(default_factory=deque)
    last_active: Optional[int] = None

    def prune(self, window_start: int) -> None:
        # keep the newest sample at or before the window start as the baseline
        while len(self.samples) > 1 and self.samples[1][0] <= window_start:
            self.samples.popleft()

    def used_since(self, window_start: int) -> float:
        self.prune(window_start)
        if len(self.samples) < 2:
            return 0.0
        return self.samples[-1][1] - self.samples[0][1]


class ProcessActivityProvider:
    """
    AttributionProvider backed by psutil.

    Usage:
        provider = ProcessActivityProvider(limit=5)
        provider.warm_up()
        recent = provider.poll(now - 10_000, now)
    """

    DEFAULT_LIMIT = 5
    DEFAULT_MIN_CPU_SECONDS = 0.01

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        min_cpu_seconds: float = DEFAULT_MIN_CPU_SECONDS,
        exclude_clients: Iterable[str] = (),
    ):
        self._limit = max(1, limit)
        self._min_cpu_seconds = min_cpu_seconds
        self._exclude = {client.lower() for client in exclude_clients}
        self._own_pid = os.getpid()
        self._tracks: Dict[Tuple[int, float], _ProcessTrack] = {}
        self._lock = threading.Lock()

    def warm_up(self, timestamp: Optional[int] = None) -> int:
        """Take a baseline sample so the first poll can already rank processes."""
        with self._lock:
            return self._sample(now_ms() if timestamp is None else timestamp)

    def poll(self, window_start: int, window_end: int) -> List[str]:
        with self._lock:
            self._sample(window_end)
            return self._rank(window_start)

    def _sample(self, now: int) -> int:
        seen = set()

        for proc in psutil.process_iter(_ATTRS):
            try:
                info = proc.info
                pid = info.get('pid')
                if pid == self._own_pid:
                    continue
                name = info.get('name')
                cpu_times = info.get('cpu_times')
                if not name or cpu_times is None:
                    continue
                if name.lower() in self._exclude:
                    continue

                key = (pid, info.get('create_time') or 0.0)
                cpu = float(cpu_times.user) + float(cpu_times.system)
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

            track = self._tracks.get(key)
            if track is None:
                track = _ProcessTrack(name=name)
                self._tracks[key] = track
            elif track.samples and cpu > track.samples[-1][1]:
                track.last_active = now
            track.samples.append((now, cpu))
            seen.add(key)

        for key in set(self._tracks) - seen:
            del self._tracks[key]

        return len(seen)

    def _rank(self, window_start: int) -> List[str]:
        per_name: Dict[str, Tuple[int, float]] = {}

        for track in self._tracks.values():
            used = track.used_since(window_start)
            if track.last_active is None or track.last_active < window_start:
                continue
            if used < self._min_cpu_seconds:
                continue
            last_active, total = per_name.get(track.name, (0, 0.0))
            per_name[track.name] = (max(last_active, track.last_active), total + used)

        ranked = sorted(per_name.items(), key=lambda item: item[1], reverse=True)
        result = [name for name, _ in ranked[:self._limit]]
        logger.debug("Active clients in window: %s", result)
        return result
