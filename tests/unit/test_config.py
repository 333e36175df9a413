"""Unit tests for BeatLensConfig."""

from pathlib import Path

import pytest

from beatlens.config import BeatLensConfig


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "beatlens.yaml"
    path.write_text(
        "audio:\n"
        "  device_index: 3\n"
        "  timeslice_ms: 500\n"
        "match:\n"
        "  url: http://example.test/api/match\n"
        "output:\n"
        "  directory: queries\n"
        "logging:\n"
        "  file_path: logs/beatlens.log\n"
    )
    return path


@pytest.mark.unit
class TestBeatLensConfig:
    """Test cases for BeatLensConfig class."""

    def test_defaults_without_file(self):
        config = BeatLensConfig()

        assert config.get('audio.timeslice_ms') == 250
        assert config.get('analysis.fft_size') == 256
        assert config.get('visualizer.bar_count') == 72
        assert config.get('match.url') is None
        assert config.get_output_directory() is None

    def test_file_overrides_defaults(self, config_file):
        config = BeatLensConfig(str(config_file))

        assert config.get('audio.timeslice_ms') == 500
        assert config.get('audio.frames_per_buffer') == 1024
        assert config.get('match.url') == "http://example.test/api/match"

    def test_relative_paths_resolve_against_config_dir(self, config_file, tmp_path):
        config = BeatLensConfig(str(config_file))

        assert config.get('logging.file_path') == str(tmp_path / "logs/beatlens.log")
        assert Path(config.get_output_directory()) == tmp_path / "queries"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            BeatLensConfig(str(tmp_path / "nope.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        with pytest.raises(ValueError):
            BeatLensConfig(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("audio: [unclosed\n")

        with pytest.raises(ValueError):
            BeatLensConfig(str(path))

    def test_get_missing_key_returns_default(self):
        config = BeatLensConfig()

        assert config.get('audio.nonexistent', 'fallback') == 'fallback'
        assert config.get('match.url', 'http://default') == 'http://default'

    def test_set_creates_nested_keys(self):
        config = BeatLensConfig()
        config.set('custom.nested.value', 42)
        config.set('match.timeout_seconds', 5)

        assert config.get('custom.nested.value') == 42
        assert config.get('match.timeout_seconds') == 5

    def test_capture_constraints(self, config_file):
        constraints = BeatLensConfig(str(config_file)).get_capture_constraints()

        assert constraints.device_index == 3
        assert constraints.sample_rate == 44100
        assert constraints.channel_count == 1
        assert constraints.sample_size == 16
        assert not constraints.echo_cancellation
        assert not constraints.noise_suppression
        assert not constraints.auto_gain_control

    def test_defaults_are_not_shared(self):
        first = BeatLensConfig()
        first.set('audio.timeslice_ms', 1)

        assert BeatLensConfig().get('audio.timeslice_ms') == 250

    def test_bundled_config_loads(self):
        path = Path(__file__).resolve().parents[2] / "beatlens.yaml"
        config = BeatLensConfig(str(path))

        assert config.get('match.url') == "http://localhost:8080/api/match"
        assert config.get('analysis.max_decibels') == -30
