"""
Session Monitor - microphone recording state machine.

Turns recording-set change notifications and attribution snapshots into
sealed SessionRecords.

State diagram:
    IDLE --(non-empty set)--> RECORDING
    RECORDING --(different non-empty set)--> RECORDING (participants grow)
    RECORDING --(empty set)--> IDLE (session sealed + emitted)

A set identical to the last reported one is a no-op in every state, which
absorbs duplicate platform notifications. Every transition runs under one
lock, so callers may be the event loop, platform callback threads or tests.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Tuple

from mic_guardian.core.logging_utils import get_module_logger

from .event_sink import EventSink
from .session_log import SessionLog
from .types import (
    EMPTY_SET,
    AttributionEntry,
    AttributionSnapshot,
    Classification,
    ClientId,
    EndReason,
    ParticipantRecord,
    RecordingSet,
    Session,
    SessionRecord,
    now_ms,
    recording_set,
)

logger = get_module_logger("SessionMonitor")

NameResolver = Callable[[ClientId], str]
Clock = Callable[[], int]

DEFAULT_MAX_ATTRIBUTION_ENTRIES = 10_000


class MonitorState(Enum):
    IDLE = "idle"
    RECORDING = "recording"


@dataclass(frozen=True)
class MonitorStatus:
    """Point-in-time view of the monitor for status surfaces."""
    state: MonitorState
    accepting: bool
    recording_set: Tuple[ClientId, ...]
    session_id: Optional[int]
    started_at: Optional[int]
    participants: Tuple[ClientId, ...]
    snapshots_consulted: int
    sessions_sealed: int

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "accepting": self.accepting,
            "recordingSet": list(self.recording_set),
            "sessionId": self.session_id,
            "startedAt": self.started_at,
            "participants": list(self.participants),
            "snapshotsConsulted": self.snapshots_consulted,
            "sessionsSealed": self.sessions_sealed,
        }


class SessionMonitor:
    """
    Owns the single open Session, if any.

    Usage:
        monitor = SessionMonitor(SessionLog(), EventSink())
        monitor.on_recording_set_changed({"arecord"})
        monitor.on_attribution_snapshot(AttributionSnapshot.of(["arecord"]))
        record = monitor.on_recording_set_changed(set())
    """

    def __init__(
        self,
        session_log: SessionLog,
        sink: EventSink,
        *,
        name_resolver: Optional[NameResolver] = None,
        clock: Clock = now_ms,
        max_attribution_entries: int = DEFAULT_MAX_ATTRIBUTION_ENTRIES,
    ):
        self._log = session_log
        self._sink = sink
        self._name_resolver = name_resolver
        self._clock = clock
        self._max_attribution_entries = max(1, max_attribution_entries)

        self._lock = threading.Lock()
        self._state = MonitorState.IDLE
        self._recording_set: RecordingSet = EMPTY_SET
        self._current: Optional[Session] = None
        self._accepting = True
        self._session_ids = itertools.count(1)
        self._sessions_sealed = 0

    # ------------------------------------------------------------------
    # Properties

    @property
    def state(self) -> MonitorState:
        with self._lock:
            return self._state

    @property
    def is_recording(self) -> bool:
        return self.state is MonitorState.RECORDING

    @property
    def accepting(self) -> bool:
        with self._lock:
            return self._accepting

    @property
    def recording_set(self) -> RecordingSet:
        with self._lock:
            return self._recording_set

    @property
    def session_log(self) -> SessionLog:
        return self._log

    def status(self) -> MonitorStatus:
        with self._lock:
            session = self._current
            return MonitorStatus(
                state=self._state,
                accepting=self._accepting,
                recording_set=tuple(sorted(self._recording_set)),
                session_id=session.id if session else None,
                started_at=session.started_at if session else None,
                participants=tuple(session.participants) if session else (),
                snapshots_consulted=session.snapshot_count if session else 0,
                sessions_sealed=self._sessions_sealed,
            )

    # ------------------------------------------------------------------
    # Inputs

    def on_recording_set_changed(
        self,
        clients: Iterable[ClientId],
        timestamp: Optional[int] = None,
    ) -> Optional[SessionRecord]:
        """Apply the latest set of recording clients.

        Returns the sealed record when this call closed a session.
        """
        new_set = recording_set(clients)

        with self._lock:
            if not self._accepting:
                logger.debug("Not accepting events, ignoring recording set %s", sorted(new_set))
                return None

            if new_set == self._recording_set:
                logger.debug("Recording set unchanged (%s), ignoring", sorted(new_set))
                return None

            ts = self._clock() if timestamp is None else timestamp
            self._recording_set = new_set

            if self._state is MonitorState.IDLE:
                self._open_locked(new_set, ts)
                return None

            if new_set:
                added = self._current.add_participants(new_set)
                if added:
                    logger.info("Session %d gained participant(s): %s", self._current.id, ", ".join(added))
                else:
                    logger.debug("Session %d recording set now %s", self._current.id, sorted(new_set))
                return None

            return self._seal_locked(ts, EndReason.IDLE)

    def on_attribution_snapshot(self, snapshot: AttributionSnapshot) -> bool:
        """Record how every participant looks in ``snapshot``.

        Returns False when there is no open session to attribute.
        """
        with self._lock:
            if not self._accepting or self._state is MonitorState.IDLE:
                logger.debug("No open session, snapshot discarded")
                return False

            session = self._current
            present = set(snapshot.clients)
            foreground = snapshot.foreground
            for client_id in session.participants:
                entry = AttributionEntry(
                    client_id=client_id,
                    is_foreground=client_id == foreground,
                    is_active=client_id in present,
                    taken_at=snapshot.taken_at,
                )
                session.tallies[client_id].record(entry)
                if len(session.attribution) < self._max_attribution_entries:
                    session.attribution.append(entry)
            session.last_snapshot = snapshot
            session.snapshot_count += 1
            logger.debug("Session %d attributed against %s", session.id, list(snapshot.clients))
            return True

    # ------------------------------------------------------------------
    # Lifecycle

    def suspend(self, timestamp: Optional[int] = None) -> Optional[SessionRecord]:
        """Stop accepting events, sealing any open session first."""
        with self._lock:
            if not self._accepting:
                return None
            self._accepting = False
            record = None
            if self._state is MonitorState.RECORDING:
                ts = self._clock() if timestamp is None else timestamp
                record = self._seal_locked(ts, EndReason.MONITORING_STOPPED)
            self._recording_set = EMPTY_SET
        logger.debug("Monitor suspended")
        return record

    def resume(self) -> None:
        with self._lock:
            if self._accepting:
                return
            self._accepting = True
            self._recording_set = EMPTY_SET
        logger.debug("Monitor resumed")

    # ------------------------------------------------------------------
    # Internals (lock held)

    def _open_locked(self, clients: RecordingSet, ts: int) -> None:
        session = Session(id=next(self._session_ids), started_at=ts)
        session.add_participants(clients)
        self._current = session
        self._state = MonitorState.RECORDING
        logger.info("Recording started: session %d by %s", session.id, ", ".join(session.participants))

    def _seal_locked(self, ts: int, reason: EndReason) -> SessionRecord:
        session = self._current
        if ts < session.started_at:
            logger.debug(
                "Close timestamp %d precedes start %d for session %d, clamping",
                ts, session.started_at, session.id,
            )
            ts = session.started_at
        session.ended_at = ts

        record = self._build_record(session, reason)

        self._current = None
        self._state = MonitorState.IDLE
        self._sessions_sealed += 1

        self._log.append(record)
        self._sink.publish(record)

        logger.info(
            "Recording stopped: session %d (%s) lasted %d ms [%s]",
            record.id,
            record.app_name,
            record.duration_ms,
            ", ".join(f"{p.client_id}={p.classification.value}" for p in record.participants),
        )
        return record

    def _build_record(self, session: Session, reason: EndReason) -> SessionRecord:
        participants = tuple(
            ParticipantRecord(
                client_id=client_id,
                display_name=self._display_name(client_id),
                classification=session.tallies[client_id].classify(),
            )
            for client_id in session.participants
        )
        primary = self._primary(participants)
        return SessionRecord(
            id=session.id,
            app_name=primary.display_name if primary else "",
            started_at=session.started_at,
            ended_at=session.ended_at,
            duration_ms=session.ended_at - session.started_at,
            participants=participants,
            snapshot=session.last_snapshot.clients if session.last_snapshot else (),
            end_reason=reason,
            primary_client=primary.client_id if primary else None,
        )

    @staticmethod
    def _primary(participants: Tuple[ParticipantRecord, ...]) -> Optional[ParticipantRecord]:
        for wanted in (Classification.FOREGROUND, Classification.BACKGROUND):
            for participant in participants:
                if participant.classification is wanted:
                    return participant
        return participants[0] if participants else None

    def _display_name(self, client_id: ClientId) -> str:
        if self._name_resolver is None:
            return client_id
        try:
            return self._name_resolver(client_id) or client_id
        except Exception as exc:
            logger.debug("Name lookup failed for %s: %s", client_id, exc)
            return client_id
