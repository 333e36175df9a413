"""Data models for the BeatLens capture pipeline."""

from .audio import CaptureConstraints, FrequencySnapshot, WavPayload, RecorderStats
from .events import RecorderState, RecorderEvent
from .session import AudioSession
from .visual import VisualState, RingBar, RingFrame
from .match import MatchResult, MatchResponse

__all__ = [
    "CaptureConstraints",
    "FrequencySnapshot",
    "WavPayload",
    "RecorderStats",
    "RecorderState",
    "RecorderEvent",
    "AudioSession",
    "VisualState",
    "RingBar",
    "RingFrame",
    "MatchResult",
    "MatchResponse",
]
