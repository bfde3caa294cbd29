"""Core monitoring components for Mic Guardian."""

from .types import (
    AttributionSnapshot,
    Classification,
    EndReason,
    ParticipantRecord,
    SessionRecord,
)
from .session_log import SessionLog
from .event_sink import EventSink, SubscriptionHandle
from .session_monitor import MonitorState, SessionMonitor
from .attribution_scheduler import AttributionScheduler, HealthStatus
from .settings import GuardianSettings
from .guardian import MicrophoneGuardian

__all__ = [
    "AttributionScheduler",
    "AttributionSnapshot",
    "Classification",
    "EndReason",
    "EventSink",
    "GuardianSettings",
    "HealthStatus",
    "MicrophoneGuardian",
    "MonitorState",
    "ParticipantRecord",
    "SessionLog",
    "SessionMonitor",
    "SessionRecord",
    "SubscriptionHandle",
]
