"""Main application entry point for BeatLens."""

import sys
import asyncio
import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from pubsub import pub
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import BeatLensConfig
from .exceptions import MatchServiceError
from .models.audio import WavPayload
from .models.events import RecorderEvent
from .models.match import MatchResponse
from .models.visual import VisualState
from .services.match_client import MatchClient
from .services.recorder import RecorderStateMachine
from .ui.ring_screen import RingScreen, ScreenStatus
from .ui.visualizer import RingGeometry, VisualizationLoop

logger = logging.getLogger(__name__)


class ListenApp:
    """Records one query, shows the live ring, and optionally asks the match service."""

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        self.config = BeatLensConfig(config_path)
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.console = Console()
        self.recorder = RecorderStateMachine(self.config)
        self.match_error: Optional[str] = None

    def _status(self) -> ScreenStatus:
        return ScreenStatus(
            duration_seconds=self.recorder.duration,
            error=self.recorder.last_error or self.match_error,
        )

    def _on_state(self, event: RecorderEvent) -> None:
        if event.error:
            logger.warning(f"Recorder {event.previous.value} -> {event.state.value}: {event.error}")

    async def run(self, duration: float, output: Optional[str], match_url: Optional[str]) -> int:
        pub.subscribe(self._on_state, "recorder.state")
        geometry = RingGeometry(
            size=int(self.config.get('visualizer.size', 280)),
            bar_count=int(self.config.get('visualizer.bar_count', 72)),
        )
        screen = RingScreen(self.console, self._status)
        visualizer = VisualizationLoop(
            screen,
            snapshot_source=self.recorder.spectral_snapshot,
            fps=float(self.config.get('visualizer.fps', 60)),
            geometry=geometry,
        )

        response: Optional[MatchResponse] = None
        async with self.recorder:
            with screen:
                async with visualizer:
                    await self.recorder.start()
                    if self.recorder.last_error:
                        self.console.print(f"❌ {self.recorder.last_error}", style="bold red")
                        return 1

                    visualizer.mode = VisualState.RECORDING
                    await asyncio.sleep(duration)
                    payload = await self.recorder.stop()
                    visualizer.mode = VisualState.IDLE

                    if payload is None:
                        message = self.recorder.last_error or "No audio was captured"
                        self.console.print(f"❌ {message}", style="bold red")
                        return 1

                    self._save(payload, output)

                    if match_url:
                        visualizer.mode = VisualState.MATCHING
                        try:
                            client = MatchClient(match_url, self.config.get('match.timeout_seconds', 30))
                            response = await client.match(payload)
                        except MatchServiceError as e:
                            self.match_error = e.detail
                        finally:
                            visualizer.mode = VisualState.IDLE

        if self.match_error:
            self.console.print(f"❌ Match failed: {self.match_error}", style="bold red")
            return 1
        if response is not None:
            self.console.print(results_table(response))
        return 0

    def _save(self, payload: WavPayload, output: Optional[str]) -> None:
        if output:
            path = Path(output)
        else:
            directory = self.config.get_output_directory()
            if not directory:
                return
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            path = Path(directory) / f"query_{timestamp}.wav"

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(bytes(payload))
        logger.info(f"Query saved: {path} ({len(payload)} bytes)")
        self.console.print(f"💾 Saved {payload.duration_seconds:.1f}s query to {path}", style="green")


def results_table(response: MatchResponse) -> Table:
    """Ranked candidates as a rich table."""
    table = Table(title=f"🎯 Matches ({response.query_fingerprints} query fingerprints, "
                        f"{response.query_duration_seconds:.1f}s)",
                  show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Artist", style="white")
    table.add_column("Confidence", justify="right")
    table.add_column("Aligned", justify="right")
    table.add_column("Offset", justify="right")

    if not response.results:
        table.add_row("-", "No match found", "", "", "", "")
    for rank, result in enumerate(response.results, start=1):
        table.add_row(
            str(rank),
            result.title,
            result.artist or "Unknown",
            f"{result.confidence:.1%}",
            f"{result.aligned_matches}/{result.total_matches}",
            f"{result.time_offset_seconds:.1f}s",
        )
    return table


def setup_logging(config: BeatLensConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/beatlens.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("BeatLens starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def main() -> None:
    """Main entry point for BeatLens."""
    parser = argparse.ArgumentParser(
        description="BeatLens - listen to music around you and identify the song",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in settings)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (overrides config)"
    )

    parser.add_argument(
        "--duration",
        type=float,
        default=8.0,
        help="Seconds to listen before stopping (default: 8)"
    )

    parser.add_argument(
        "--output",
        type=str,
        help="Write the recorded WAV query to this path"
    )

    parser.add_argument(
        "--match-url",
        type=str,
        help="Match endpoint URL (overrides match.url from config)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"BeatLens v{__version__}"
    )

    args = parser.parse_args()

    try:
        app = ListenApp(args.config, args.log_level)
        match_url = args.match_url or app.config.get('match.url')
        exit_code = asyncio.run(app.run(args.duration, args.output, match_url))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        exit_code = 130
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}")
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
