"""Session-related data models."""

from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any


@dataclass
class AudioSession:
    """Resources owned by one active recording.

    ``resources`` unwinds in reverse acquisition order; closing it is the
    only way the microphone, analyser tap and chunk recorder are released.
    """
    microphone: Any
    tap: Any
    recorder: Any
    started_at: float
    resources: AsyncExitStack = field(default_factory=AsyncExitStack)
