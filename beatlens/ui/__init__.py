"""Visualization loop and terminal painter."""

from .visualizer import VisualizationLoop, RingGeometry, compute_ring_frame, select_visual_state
from .ring_screen import RingScreen, ScreenStatus, format_duration

__all__ = [
    "VisualizationLoop",
    "RingGeometry",
    "compute_ring_frame",
    "select_visual_state",
    "RingScreen",
    "ScreenStatus",
    "format_duration",
]
