"""Visualizer frame models, independent of any drawing surface."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class VisualState(Enum):
    """What the ring visualizer is showing."""
    IDLE = "idle"
    RECORDING = "recording"
    MATCHING = "matching"


@dataclass(frozen=True)
class RingBar:
    """One radial bar: a stroke from (x1, y1) to (x2, y2) in CSS pixels."""
    index: int
    angle: float
    length: float
    x1: float
    y1: float
    x2: float
    y2: float
    hue: float
    saturation: float
    lightness: float
    alpha: float
    width: float
    level: float = 0.0  # normalised 0..1 magnitude or motion value


@dataclass
class RingFrame:
    """All bars for a single rendered frame."""
    state: VisualState
    timestamp: float
    size: int
    bars: List[RingBar] = field(default_factory=list)
