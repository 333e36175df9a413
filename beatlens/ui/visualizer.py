"""Circular frequency-bar visualizer driven by a steady frame clock.

Three visual states:
 1. Idle - subtle breathing ring of short bars
 2. Recording - bars follow live frequency snapshots
 3. Matching - rotating wave while the match request is in flight

Frame geometry is computed here; drawing is delegated to a painter
callable so the loop never depends on a particular surface.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..models.audio import FrequencySnapshot
from ..models.visual import RingBar, RingFrame, VisualState

logger = logging.getLogger(__name__)

Painter = Callable[[RingFrame], None]
SnapshotSource = Callable[[], Optional[FrequencySnapshot]]


@dataclass(frozen=True)
class RingGeometry:
    """Ring layout in CSS pixels."""
    size: int = 280
    inner_radius: float = 86.0  # just outside the listen button
    bar_count: int = 72
    max_bar_height: float = 36.0
    spectrum_fraction: float = 0.75  # musical content sits in the lower bins

    @property
    def center(self) -> float:
        return self.size / 2


def select_visual_state(mode: VisualState, snapshot: Optional[FrequencySnapshot]) -> VisualState:
    """Recording needs a snapshot; without one the ring falls back to idle."""
    if mode is VisualState.RECORDING and snapshot is None:
        return VisualState.IDLE
    return mode


def _bar(geometry: RingGeometry, index: int, angle: float, length: float,
         hue: float, saturation: float, lightness: float, alpha: float,
         width: float, level: float) -> RingBar:
    cos = math.cos(angle)
    sin = math.sin(angle)
    c = geometry.center
    r = geometry.inner_radius
    return RingBar(
        index=index,
        angle=angle,
        length=length,
        x1=c + cos * r,
        y1=c + sin * r,
        x2=c + cos * (r + length),
        y2=c + sin * (r + length),
        hue=hue,
        saturation=saturation,
        lightness=lightness,
        alpha=alpha,
        width=width,
        level=level,
    )


def compute_ring_frame(
    state: VisualState,
    now: float,
    snapshot: Optional[FrequencySnapshot] = None,
    geometry: RingGeometry = RingGeometry(),
) -> RingFrame:
    """Bars for one frame. ``now`` is wall-clock seconds; it drives the synthetic motion."""
    state = select_visual_state(state, snapshot)
    n = geometry.bar_count
    bars = []

    if state is VisualState.RECORDING:
        magnitudes = snapshot.magnitudes
        bin_count = len(magnitudes)
        for i in range(n):
            data_index = int(math.floor(i / n * bin_count * geometry.spectrum_fraction))
            value = magnitudes[data_index] / 255.0
            bars.append(_bar(
                geometry, i,
                angle=i / n * math.pi * 2 - math.pi / 2,
                length=max(3.0, value * geometry.max_bar_height),
                hue=170 + i / n * 25,  # teal to cyan around the ring
                saturation=0.80,
                lightness=0.65,
                alpha=0.45 + value * 0.55,
                width=2.5,
                level=value,
            ))

    elif state is VisualState.MATCHING:
        for i in range(n):
            wave = math.sin(now * 3 + i * 0.2) * 0.5 + 0.5
            bars.append(_bar(
                geometry, i,
                angle=i / n * math.pi * 2 - math.pi / 2 + now * 2,
                length=3 + wave * 18,
                hue=180,
                saturation=0.70,
                lightness=0.55,
                alpha=0.25 + wave * 0.45,
                width=2.0,
                level=wave,
            ))

    else:
        for i in range(n):
            breathe = math.sin(now * 1.5 + i * 0.12) * 0.5 + 0.5
            bars.append(_bar(
                geometry, i,
                angle=i / n * math.pi * 2 - math.pi / 2,
                length=2 + breathe * 5,
                hue=170 + i / n * 20,
                saturation=0.60,
                lightness=0.50,
                alpha=0.08 + breathe * 0.14,
                width=2.0,
                level=breathe,
            ))

    return RingFrame(state=state, timestamp=now, size=geometry.size, bars=bars)


class VisualizationLoop:
    """Self-rescheduling render loop at a fixed frame rate.

    The caller picks ``mode`` at any time; each frame reads it together
    with the latest snapshot. ``stop()`` cancels the scheduled frame.
    """

    def __init__(
        self,
        painter: Painter,
        snapshot_source: Optional[SnapshotSource] = None,
        fps: float = 60.0,
        geometry: RingGeometry = RingGeometry(),
        clock: Callable[[], float] = time.time,
    ):
        """Initialize visualization loop.

        Args:
            painter: Receives every computed RingFrame
            snapshot_source: Returns the current FrequencySnapshot or None
            fps: Target frames per second
            geometry: Ring layout
            clock: Wall clock for the synthetic animations
        """
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")

        self.painter = painter
        self.snapshot_source = snapshot_source
        self.frame_interval = 1.0 / fps
        self.geometry = geometry
        self.mode = VisualState.IDLE
        self.frames_rendered = 0
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def render_frame(self) -> RingFrame:
        """Compute and paint one frame."""
        snapshot = None
        if self.mode is VisualState.RECORDING and self.snapshot_source is not None:
            snapshot = self.snapshot_source()

        frame = compute_ring_frame(self.mode, self._clock(), snapshot, self.geometry)
        self.frames_rendered += 1
        try:
            self.painter(frame)
        except Exception as e:
            logger.error(f"Error painting frame: {e}")
        return frame

    def start(self) -> None:
        """Schedule the loop on the running event loop."""
        if self.is_running:
            logger.warning("Visualization loop already running")
            return
        self._task = asyncio.ensure_future(self._run())
        logger.debug(f"Visualization loop started at {1.0 / self.frame_interval:.0f} fps")

    async def stop(self) -> None:
        """Cancel the pending frame and wait for the loop to exit."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug(f"Visualization loop stopped after {self.frames_rendered} frames")

    async def __aenter__(self) -> "VisualizationLoop":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_frame = loop.time()
        while True:
            self.render_frame()
            next_frame += self.frame_interval
            delay = next_frame - loop.time()
            if delay < 0:
                # Fell behind: drop the missed frames instead of bursting
                next_frame = loop.time()
                delay = 0
            await asyncio.sleep(delay)
