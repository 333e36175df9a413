"""Terminal painter for the ring visualizer."""

import colorsys
import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

from rich.align import Align
from rich.color import Color
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.style import Style
from rich.text import Text

from ..models.visual import RingBar, RingFrame, VisualState

logger = logging.getLogger(__name__)

GLYPHS = " ▁▂▃▄▅▆▇█"
FULL_SCALE = 36.0  # longest bar the recording state can draw

STATE_LABELS = {
    VisualState.IDLE: ("⏹️  READY", "bold cyan"),
    VisualState.RECORDING: ("🔴 LISTENING", "bold red"),
    VisualState.MATCHING: ("🔄 MATCHING", "bold yellow"),
}

HINTS = {
    VisualState.IDLE: "Start listening to music around you",
    VisualState.RECORDING: "Listening... stop to identify the song",
    VisualState.MATCHING: "Analyzing audio fingerprint against the library...",
}


def format_duration(seconds: float) -> str:
    """Seconds with one truncated decimal, e.g. 3.47 -> '3.4s'."""
    sec = math.floor(seconds)
    tenths = math.floor((seconds % 1) * 10)
    return f"{sec}.{tenths}s"


def bar_style(bar: RingBar) -> Style:
    """HSLA colour blended onto a black terminal background."""
    r, g, b = colorsys.hls_to_rgb(bar.hue / 360.0, bar.lightness, bar.saturation)
    a = max(0.0, min(1.0, bar.alpha))
    return Style(color=Color.from_rgb(r * a * 255, g * a * 255, b * a * 255))


def bar_glyph(bar: RingBar) -> str:
    level = max(0.0, min(1.0, bar.length / FULL_SCALE))
    return GLYPHS[int(round(level * (len(GLYPHS) - 1)))]


@dataclass
class ScreenStatus:
    """What the screen shows besides the bars."""
    duration_seconds: float = 0.0
    error: Optional[str] = None


class RingScreen:
    """Draws each RingFrame as a coloured strip of bars inside a rich Live view.

    Bar i of the ring becomes column i, so the strip reads clockwise from
    twelve o'clock.
    """

    def __init__(self, console: Optional[Console] = None,
                 status_provider: Optional[Callable[[], ScreenStatus]] = None):
        self.console = console or Console()
        self.status_provider = status_provider or ScreenStatus
        self.live: Optional[Live] = None
        self.last_frame: Optional[RingFrame] = None

    def render(self, frame: RingFrame) -> Panel:
        status = self.status_provider()
        label, label_style = STATE_LABELS[frame.state]

        strip = Text()
        for bar in frame.bars:
            strip.append(bar_glyph(bar), style=bar_style(bar))

        header = Text.assemble((label, label_style), "  |  ", format_duration(status.duration_seconds))
        body = [Align.center(header), Text(), Align.center(strip), Text(),
                Align.center(Text(HINTS[frame.state], style="dim white italic"))]
        if status.error:
            body.append(Align.center(Text(f"⚠️  {status.error}", style="bold red")))

        return Panel(Group(*body), title="🎵 BeatLens", border_style="cyan")

    def __call__(self, frame: RingFrame) -> None:
        self.last_frame = frame
        if self.live is not None:
            self.live.update(self.render(frame))

    def __enter__(self) -> "RingScreen":
        self.live = Live(console=self.console, refresh_per_second=30, transient=True)
        self.live.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.live is not None:
            self.live.stop()
            self.live = None
