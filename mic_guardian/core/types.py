"""Core data structures shared by the monitor, log and listeners."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

ClientId = str
RecordingSet = FrozenSet[ClientId]

EMPTY_SET: RecordingSet = frozenset()


def now_ms() -> int:
    """Wall clock in integer milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


def recording_set(clients: Iterable[ClientId]) -> RecordingSet:
    return frozenset(client for client in clients if client)


class Classification(Enum):
    """Final attribution verdict for one participant of a session."""
    FOREGROUND = "FOREGROUND"
    BACKGROUND = "BACKGROUND"
    INACTIVE = "INACTIVE"


class EndReason(Enum):
    IDLE = "idle"
    MONITORING_STOPPED = "monitoring_stopped"


@dataclass(frozen=True)
class AttributionSnapshot:
    """Clients recently active according to the provider, most recent first."""
    clients: Tuple[ClientId, ...]
    taken_at: int

    @classmethod
    def of(cls, clients: Iterable[ClientId], taken_at: Optional[int] = None) -> "AttributionSnapshot":
        return cls(tuple(clients), now_ms() if taken_at is None else taken_at)

    @property
    def foreground(self) -> Optional[ClientId]:
        return self.clients[0] if self.clients else None


@dataclass(frozen=True)
class AttributionEntry:
    """How one participant looked in one snapshot."""
    client_id: ClientId
    is_foreground: bool
    is_active: bool
    taken_at: int


@dataclass
class ParticipantTally:
    """Running per-participant counters; exact even when entries are capped."""
    consulted: int = 0
    foreground: int = 0
    active: int = 0

    def record(self, entry: AttributionEntry) -> None:
        self.consulted += 1
        if entry.is_foreground:
            self.foreground += 1
        if entry.is_active:
            self.active += 1

    def classify(self) -> Classification:
        if self.consulted and self.foreground == self.consulted:
            return Classification.FOREGROUND
        if self.active:
            return Classification.BACKGROUND
        return Classification.INACTIVE


@dataclass
class Session:
    """An open recording session. Owned and mutated by the monitor only."""
    id: int
    started_at: int
    participants: List[ClientId] = field(default_factory=list)
    attribution: List[AttributionEntry] = field(default_factory=list)
    tallies: Dict[ClientId, ParticipantTally] = field(default_factory=dict)
    last_snapshot: Optional[AttributionSnapshot] = None
    snapshot_count: int = 0
    ended_at: Optional[int] = None

    def add_participants(self, clients: Iterable[ClientId]) -> List[ClientId]:
        added = []
        for client in sorted(clients):
            if client not in self.tallies:
                self.participants.append(client)
                self.tallies[client] = ParticipantTally()
                added.append(client)
        return added


@dataclass(frozen=True)
class ParticipantRecord:
    client_id: ClientId
    display_name: str
    classification: Classification

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clientId": self.client_id,
            "displayName": self.display_name,
            "classification": self.classification.value,
        }


@dataclass(frozen=True)
class SessionRecord:
    """Immutable, sealed view of a finished session."""
    id: int
    app_name: str
    started_at: int
    ended_at: int
    duration_ms: int
    participants: Tuple[ParticipantRecord, ...]
    snapshot: Tuple[ClientId, ...] = ()
    end_reason: EndReason = EndReason.IDLE
    primary_client: Optional[ClientId] = None

    @property
    def classification(self) -> Classification:
        """Classification of the primary participant."""
        primary = self.participant(self.primary_client) if self.primary_client else None
        return primary.classification if primary else Classification.INACTIVE

    def participant(self, client_id: ClientId) -> Optional[ParticipantRecord]:
        for participant in self.participants:
            if participant.client_id == client_id:
                return participant
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "appName": self.app_name,
            "primaryClient": self.primary_client,
            "startedAt": self.started_at,
            "endedAt": self.ended_at,
            "durationMs": self.duration_ms,
            "classification": self.classification.value,
            "participants": [participant.to_dict() for participant in self.participants],
            "snapshot": list(self.snapshot),
            "endReason": self.end_reason.value,
        }


__all__ = [
    "AttributionEntry",
    "AttributionSnapshot",
    "Classification",
    "ClientId",
    "EMPTY_SET",
    "EndReason",
    "ParticipantRecord",
    "ParticipantTally",
    "RecordingSet",
    "Session",
    "SessionRecord",
    "now_ms",
    "recording_set",
]
