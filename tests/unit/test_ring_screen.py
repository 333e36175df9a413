"""Unit tests for the terminal ring painter and CLI helpers."""

from dataclasses import replace

import pytest
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from beatlens.main import results_table
from beatlens.models.match import MatchResponse
from beatlens.models.visual import VisualState
from beatlens.ui.ring_screen import (
    GLYPHS,
    RingScreen,
    ScreenStatus,
    bar_glyph,
    bar_style,
    format_duration,
)
from beatlens.ui.visualizer import compute_ring_frame


@pytest.mark.unit
class TestFormatDuration:
    """Seconds display with one truncated decimal."""

    @pytest.mark.parametrize("seconds, expected", [
        (0.0, "0.0s"),
        (3.47, "3.4s"),
        (12.99, "12.9s"),
        (60.05, "60.0s"),
    ])
    def test_format(self, seconds, expected):
        assert format_duration(seconds) == expected


@pytest.mark.unit
class TestRingScreen:
    """Test cases for RingScreen class."""

    def test_glyph_scale(self):
        frame = compute_ring_frame(VisualState.IDLE, 0.0)
        glyph = bar_glyph(frame.bars[0])

        assert glyph in GLYPHS

    def test_transparent_bar_is_black(self):
        bar = compute_ring_frame(VisualState.IDLE, 0.0).bars[0]
        faded = replace(bar, alpha=0.0)

        triplet = bar_style(faded).color.get_truecolor()
        assert (triplet.red, triplet.green, triplet.blue) == (0, 0, 0)

    def test_render_shows_state_and_duration(self):
        console = Console(record=True, width=120)
        screen = RingScreen(console, lambda: ScreenStatus(duration_seconds=4.25))

        console.print(screen.render(compute_ring_frame(VisualState.MATCHING, 0.0)))
        text = console.export_text()

        assert "MATCHING" in text
        assert "4.2s" in text

    def test_render_shows_error(self):
        console = Console(record=True, width=120)
        screen = RingScreen(console, lambda: ScreenStatus(error="Microphone access denied"))

        panel = screen.render(compute_ring_frame(VisualState.IDLE, 0.0))
        console.print(panel)

        assert isinstance(panel, Panel)
        assert "Microphone access denied" in console.export_text()

    def test_call_without_live_keeps_frame(self):
        screen = RingScreen(Console(record=True))
        frame = compute_ring_frame(VisualState.IDLE, 0.0)

        screen(frame)

        assert screen.last_frame is frame

    def test_live_lifecycle(self):
        screen = RingScreen(Console(record=True, width=120))

        with screen:
            assert screen.live is not None
            screen(compute_ring_frame(VisualState.IDLE, 0.0))

        assert screen.live is None


@pytest.mark.unit
class TestResultsTable:
    """Match results rendering."""

    def test_rows_per_result(self):
        response = MatchResponse.from_json({
            "results": [
                {"songId": 1, "title": "A", "artist": "X", "confidence": 0.9,
                 "alignedMatches": 9, "totalMatches": 10, "timeOffsetSeconds": 1.5},
                {"songId": 2, "title": "B", "artist": None, "confidence": 0.2,
                 "alignedMatches": 2, "totalMatches": 10, "timeOffsetSeconds": 30.0},
            ],
            "queryFingerprints": 100,
            "queryDurationSeconds": 8.0,
        })

        table = results_table(response)

        assert isinstance(table, Table)
        assert table.row_count == 2

    def test_no_match_row(self):
        table = results_table(MatchResponse())
        assert table.row_count == 1
