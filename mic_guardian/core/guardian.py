"""
Microphone Guardian - wires the source, monitor, scheduler, log and sink.

This is the lifecycle surface used by the CLI entry point and the REST API.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

from mic_guardian.core.logging_utils import get_module_logger
from mic_guardian.providers.base import AttributionProvider
from mic_guardian.sources.base import AudioStateSource

from .attribution_scheduler import AttributionScheduler
from .event_sink import EventSink, Listener, SubscriptionHandle
from .session_log import SessionLog
from .session_monitor import NameResolver, SessionMonitor
from .settings import GuardianSettings
from .types import SessionRecord, now_ms

logger = get_module_logger("Guardian")

STATUS_INACTIVE = "Monitoring inactive"
STATUS_IDLE = "Monitoring active - no recording"
STATUS_RECORDING = "Recording active: {count} app(s)"


class MicrophoneGuardian:
    """
    Owns one monitoring pipeline.

    Usage:
        guardian = MicrophoneGuardian(PulseAudioSource(), ProcessActivityProvider())
        guardian.subscribe(print)
        await guardian.start()
        ...
        await guardian.close()
    """

    def __init__(
        self,
        source: AudioStateSource,
        provider: AttributionProvider,
        settings: Optional[GuardianSettings] = None,
        *,
        name_resolver: Optional[NameResolver] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.settings = settings or GuardianSettings()
        self._source = source
        self._provider = provider

        resolver = name_resolver or getattr(provider, "display_name", None)

        self.session_log = SessionLog(self.settings.history_capacity)
        self.sink = EventSink()
        self.monitor = SessionMonitor(
            self.session_log,
            self.sink,
            name_resolver=resolver,
            clock=clock,
            max_attribution_entries=self.settings.max_attribution_entries,
        )
        self.scheduler = AttributionScheduler(
            provider,
            self.monitor,
            poll_interval=self.settings.poll_interval,
            heartbeat_interval=self.settings.heartbeat_interval,
            window=self.settings.attribution_window,
            clock=clock,
        )

        self._running = False
        self._closed = False
        self._lifecycle_lock = asyncio.Lock()
        self._started_monotonic: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> bool:
        """Begin monitoring. Returns False if already running or start failed."""
        async with self._lifecycle_lock:
            if self._closed:
                logger.warning("Cannot start, guardian is closed")
                return False
            if self._running:
                logger.debug("Monitoring already active")
                return False

            self.monitor.resume()
            await self.scheduler.start()
            try:
                await self._source.start(self._on_recording_set)
            except Exception as exc:
                logger.error("Audio state source failed to start: %s", exc, exc_info=True)
                self.monitor.suspend()
                await self.scheduler.stop()
                return False

            self._running = True
            self._started_monotonic = time.monotonic()

        logger.info("Monitoring started")
        return True

    async def stop(self) -> bool:
        """Stop monitoring, sealing any open session. Returns False if not running."""
        async with self._lifecycle_lock:
            if not self._running:
                return False

            self._running = False
            record = self.monitor.suspend()
            if record:
                logger.info("Sealed session %d on stop", record.id)

            try:
                await self._source.stop()
            except Exception as exc:
                logger.error("Audio state source failed to stop cleanly: %s", exc, exc_info=True)
            await self.scheduler.stop()
            self._started_monotonic = None

        logger.info("Monitoring stopped")
        return True

    async def close(self) -> None:
        """Stop monitoring and shut down listener threads."""
        await self.stop()
        self._closed = True
        await asyncio.to_thread(self.sink.close)

    # ------------------------------------------------------------------
    # Source callback

    def _on_recording_set(self, clients: FrozenSet[str], timestamp: Optional[int] = None) -> None:
        was_recording = self.monitor.is_recording
        self.monitor.on_recording_set_changed(clients, timestamp)
        if not was_recording and self.monitor.is_recording:
            # attribute straight away instead of waiting for the next tick
            self.scheduler.request_poll()

    # ------------------------------------------------------------------
    # Observers and history

    def subscribe(self, listener: Listener, name: Optional[str] = None) -> SubscriptionHandle:
        return self.sink.subscribe(listener, name=name)

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        return self.sink.unsubscribe(handle)

    def history(self, limit: Optional[int] = None) -> Tuple[SessionRecord, ...]:
        return self.session_log.snapshot(limit)

    def clear_history(self) -> int:
        return self.session_log.clear()

    # ------------------------------------------------------------------
    # Status

    def status_text(self) -> str:
        if not self._running:
            return STATUS_INACTIVE
        active = self.monitor.recording_set
        if active:
            return STATUS_RECORDING.format(count=len(active))
        return STATUS_IDLE

    def status(self) -> Dict[str, Any]:
        uptime = None
        if self._started_monotonic is not None:
            uptime = round(time.monotonic() - self._started_monotonic, 3)
        return {
            "monitoring": self._running,
            "statusText": self.status_text(),
            "uptimeSeconds": uptime,
            "monitor": self.monitor.status().to_dict(),
            "attribution": self.scheduler.stats(),
            "history": {
                "count": len(self.session_log),
                "capacity": self.session_log.capacity,
                "totalRecorded": self.session_log.total_appended,
            },
            "listeners": self.sink.listener_count,
        }
