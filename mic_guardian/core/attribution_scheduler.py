"""
Attribution Scheduler - periodic attribution polling.

Runs two asyncio tasks against one AttributionProvider:
- a fast poll that feeds the SessionMonitor while a session is open
- a slow heartbeat that only checks the provider is still answering

Both tasks start and stop together. ``stop()`` awaits both, and once it
returns no further snapshot reaches the monitor.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from mic_guardian.core.logging_utils import get_module_logger
from mic_guardian.providers.base import AttributionProvider

from .session_monitor import SessionMonitor
from .types import AttributionSnapshot, now_ms

logger = get_module_logger("AttributionScheduler")


class HealthStatus(Enum):
    """Provider health as seen by the heartbeat."""
    HEALTHY = "healthy"
    WARNING = "warning"      # Recent failures
    UNHEALTHY = "unhealthy"  # Exceeded threshold
    UNKNOWN = "unknown"      # No poll finished yet


@dataclass
class ProviderHealth:
    status: HealthStatus = HealthStatus.UNKNOWN
    polls: int = 0
    heartbeats: int = 0
    failures: int = 0
    consecutive_failures: int = 0
    last_success_ms: Optional[int] = None
    last_heartbeat_ms: Optional[int] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "polls": self.polls,
            "heartbeats": self.heartbeats,
            "failures": self.failures,
            "consecutiveFailures": self.consecutive_failures,
            "lastSuccessMs": self.last_success_ms,
            "lastHeartbeatMs": self.last_heartbeat_ms,
            "lastError": self.last_error,
        }


class AttributionScheduler:
    """
    Polls the attribution provider on a fixed cadence.

    Usage:
        scheduler = AttributionScheduler(provider, monitor)
        await scheduler.start()
        scheduler.request_poll()   # e.g. right after a session opens
        ...
        await scheduler.stop()
    """

    DEFAULT_POLL_INTERVAL = 1.0
    DEFAULT_HEARTBEAT_INTERVAL = 5.0
    DEFAULT_WINDOW = 10.0
    DEFAULT_UNHEALTHY_THRESHOLD = 3

    def __init__(
        self,
        provider: AttributionProvider,
        monitor: SessionMonitor,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        window: float = DEFAULT_WINDOW,
        unhealthy_threshold: int = DEFAULT_UNHEALTHY_THRESHOLD,
        clock: Callable[[], int] = now_ms,
    ):
        if poll_interval <= 0 or heartbeat_interval <= 0:
            raise ValueError("poll and heartbeat intervals must be positive")
        self._provider = provider
        self._monitor = monitor
        self._poll_interval = poll_interval
        self._heartbeat_interval = heartbeat_interval
        self._window_ms = int(window * 1000)
        self._unhealthy_threshold = max(1, unhealthy_threshold)
        self._clock = clock

        self._health = ProviderHealth()
        self._running = False
        self._lifecycle_lock = asyncio.Lock()
        self._poll_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def health(self) -> ProviderHealth:
        return self._health

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> None:
        async with self._lifecycle_lock:
            if self._running:
                logger.debug("Scheduler already running")
                return

            self._loop = asyncio.get_running_loop()
            self._wake = asyncio.Event()
            self._running = True
            self._poll_task = asyncio.create_task(self._poll_loop(), name="attribution-poll")
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="attribution-heartbeat")

        logger.info(
            "Attribution scheduler started (poll=%.1fs, heartbeat=%.1fs, window=%dms)",
            self._poll_interval, self._heartbeat_interval, self._window_ms,
        )

    async def stop(self) -> None:
        async with self._lifecycle_lock:
            if not self._running:
                return

            self._running = False
            tasks = [task for task in (self._poll_task, self._heartbeat_task) if task]
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

            self._poll_task = None
            self._heartbeat_task = None
            self._wake = None
            self._loop = None

        logger.info("Attribution scheduler stopped")

    def request_poll(self) -> None:
        """Ask for an out-of-cycle poll. Safe to call from any thread."""
        loop, wake = self._loop, self._wake
        if not self._running or loop is None or wake is None:
            return
        try:
            loop.call_soon_threadsafe(wake.set)
        except RuntimeError:
            logger.debug("Event loop closed, poll request dropped")

    # ------------------------------------------------------------------
    # Polling

    async def poll_once(self, *, heartbeat: bool = False) -> Optional[AttributionSnapshot]:
        """Query the provider once and hand the snapshot to the monitor.

        Provider failures are logged and counted, never raised.
        """
        window_end = self._clock()
        window_start = window_end - self._window_ms
        kind = "heartbeat" if heartbeat else "poll"

        try:
            clients = await asyncio.to_thread(self._provider.poll, window_start, window_end)
        except Exception as exc:
            self._record_failure(exc, kind)
            return None

        snapshot = AttributionSnapshot(tuple(clients or ()), window_end)
        self._record_success(window_end, heartbeat)

        # heartbeats only prove the provider answers; they never classify
        if self._running and not heartbeat:
            self._monitor.on_attribution_snapshot(snapshot)
        return snapshot

    async def _poll_loop(self) -> None:
        try:
            while self._running:
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=self._poll_interval)
                except asyncio.TimeoutError:
                    pass
                self._wake.clear()
                if not self._running:
                    break
                await self.poll_once()
        except asyncio.CancelledError:
            pass

    async def _heartbeat_loop(self) -> None:
        try:
            while self._running:
                await asyncio.sleep(self._heartbeat_interval)
                if not self._running:
                    break
                await self.poll_once(heartbeat=True)
        except asyncio.CancelledError:
            pass

    # ------------------------------------------------------------------
    # Health bookkeeping

    def _record_success(self, at_ms: int, heartbeat: bool) -> None:
        health = self._health
        recovered = health.status in (HealthStatus.WARNING, HealthStatus.UNHEALTHY)
        if heartbeat:
            health.heartbeats += 1
            health.last_heartbeat_ms = at_ms
        else:
            health.polls += 1
        health.consecutive_failures = 0
        health.last_success_ms = at_ms
        health.status = HealthStatus.HEALTHY
        if recovered:
            logger.info("Attribution provider recovered")

    def _record_failure(self, exc: Exception, kind: str) -> None:
        health = self._health
        health.failures += 1
        health.consecutive_failures += 1
        health.last_error = f"{type(exc).__name__}: {exc}"

        previous = health.status
        if health.consecutive_failures >= self._unhealthy_threshold:
            health.status = HealthStatus.UNHEALTHY
        else:
            health.status = HealthStatus.WARNING

        logger.warning(
            "Attribution %s failed (%d in a row): %s",
            kind, health.consecutive_failures, health.last_error,
        )
        if health.status is HealthStatus.UNHEALTHY and previous is not HealthStatus.UNHEALTHY:
            logger.error("Attribution provider unhealthy after %d failures", health.consecutive_failures)

    def stats(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "pollInterval": self._poll_interval,
            "heartbeatInterval": self._heartbeat_interval,
            "windowMs": self._window_ms,
            "health": self._health.to_dict(),
        }
