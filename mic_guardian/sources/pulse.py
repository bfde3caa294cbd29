"""
PulseAudio / PipeWire recording source.

Polls ``pactl list source-outputs`` and reports which applications hold an
uncorked capture stream. Works against PipeWire through pipewire-pulse too.
"""

import asyncio
import re
import subprocess
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional

from mic_guardian.core.logging_utils import get_module_logger
from mic_guardian.core.types import EMPTY_SET, now_ms

from .base import RecordingSetCallback

logger = get_module_logger("PulseAudioSource")

_HEADER_RE = re.compile(r"^Source Output #(\d+)\s*$")
_PROPERTY_RE = re.compile(r'^([\w.\-]+)\s*=\s*"(.*)"\s*$')
_FIELD_RE = re.compile(r"^([A-Za-z][\w ]*):\s*(.*)$")


@dataclass
class SourceOutput:
    """One capture stream as reported by ``pactl``."""
    index: int
    corked: bool = False
    properties: Dict[str, str] = field(default_factory=dict)

    @property
    def client_id(self) -> Optional[str]:
        for key in ("application.process.binary", "application.name", "application.id"):
            value = self.properties.get(key)
            if value:
                return value
        return None


def parse_source_outputs(text: str) -> List[SourceOutput]:
    """Parse the human-readable ``pactl list source-outputs`` output."""
    outputs: List[SourceOutput] = []
    current: Optional[SourceOutput] = None
    in_properties = False

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        header = _HEADER_RE.match(line)
        if header:
            current = SourceOutput(index=int(header.group(1)))
            outputs.append(current)
            in_properties = False
            continue

        if current is None:
            continue

        if line == "Properties:":
            in_properties = True
            continue

        if in_properties:
            prop = _PROPERTY_RE.match(line)
            if prop:
                current.properties[prop.group(1)] = prop.group(2)
                continue
            in_properties = False

        match = _FIELD_RE.match(line)
        if match and match.group(1) == "Corked":
            current.corked = match.group(2).strip().lower() == "yes"

    return outputs


class PulseAudioSource:
    """
    AudioStateSource backed by ``pactl``.

    Usage:
        source = PulseAudioSource(exclude_clients=["mic-guardian"])
        await source.start(callback)
        ...
        await source.stop()
    """

    DEFAULT_POLL_INTERVAL = 0.5
    DEFAULT_COMMAND_TIMEOUT = 2.0

    def __init__(
        self,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        exclude_clients: Iterable[str] = (),
        command: Iterable[str] = ("pactl", "list", "source-outputs"),
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        include_corked: bool = False,
    ):
        self._poll_interval = poll_interval
        self._exclude = {client.lower() for client in exclude_clients}
        self._command = list(command)
        self._command_timeout = command_timeout
        self._include_corked = include_corked

        self._callback: Optional[RecordingSetCallback] = None
        self._last_set: FrozenSet[str] = EMPTY_SET
        self._poll_task: Optional[asyncio.Task] = None
        self._running = False
        self._command_missing_logged = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def current(self) -> FrozenSet[str]:
        return self._last_set

    async def start(self, callback: RecordingSetCallback) -> None:
        """Start polling; the first scan runs before this returns."""
        if self._running:
            return

        self._callback = callback
        self._last_set = EMPTY_SET
        self._running = True

        await self.scan()

        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("PulseAudio source started (interval=%.2fs)", self._poll_interval)

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False

        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        self._callback = None
        logger.info("PulseAudio source stopped")

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._poll_interval)
                await self.scan()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in source poll loop: %s", e)

    async def scan(self) -> Optional[FrozenSet[str]]:
        """Read the capture streams once; push the set if it changed."""
        text = await asyncio.to_thread(self._run_command)
        if text is None:
            return None

        clients = self._clients_from(parse_source_outputs(text))
        if clients != self._last_set:
            logger.debug("Recording clients changed: %s -> %s", sorted(self._last_set), sorted(clients))
            self._last_set = clients
            callback = self._callback
            if callback and self._running:
                callback(clients, now_ms())
        return clients

    def _clients_from(self, outputs: Iterable[SourceOutput]) -> FrozenSet[str]:
        clients = set()
        for output in outputs:
            if output.corked and not self._include_corked:
                continue
            client_id = output.client_id
            if not client_id or client_id.lower() in self._exclude:
                continue
            clients.add(client_id)
        return frozenset(clients)

    def _run_command(self) -> Optional[str]:
        try:
            result = subprocess.run(
                self._command,
                capture_output=True,
                text=True,
                timeout=self._command_timeout,
            )
        except FileNotFoundError:
            if not self._command_missing_logged:
                logger.error("%s not found - is PulseAudio/PipeWire installed?", self._command[0])
                self._command_missing_logged = True
            return None
        except subprocess.TimeoutExpired:
            logger.warning("%s timed out after %.1fs", " ".join(self._command), self._command_timeout)
            return None

        if result.returncode != 0:
            logger.warning("%s exited with %d: %s", " ".join(self._command), result.returncode, result.stderr.strip())
            return None
        return result.stdout
