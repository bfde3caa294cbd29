"""Audio state sources: report which clients are capturing audio."""

from .base import AudioStateSource, RecordingSetCallback
from .pulse import PulseAudioSource, parse_source_outputs

__all__ = ["AudioStateSource", "PulseAudioSource", "RecordingSetCallback", "parse_source_outputs"]
