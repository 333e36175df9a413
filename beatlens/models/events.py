"""Event models for recorder state notifications."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class RecorderState(Enum):
    """Lifecycle states of a recording session."""
    IDLE = "idle"
    ACQUIRING = "acquiring"
    RECORDING = "recording"
    STOPPING = "stopping"
    TRANSCODING = "transcoding"
    ERROR = "error"


@dataclass
class RecorderEvent:
    """Published on every recorder state transition."""
    previous: RecorderState
    state: RecorderState
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
