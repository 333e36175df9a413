"""Pytest configuration and fixtures for BeatLens tests."""

import pytest
import logging
from unittest.mock import MagicMock, patch
import numpy as np
from pubsub import pub


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with mocked audio hardware")
    config.addinivalue_line("markers", "integration: full pipeline with real codecs and mocked hardware")
    config.addinivalue_line("markers", "hardware: needs a real microphone (run with -m hardware)")


@pytest.fixture(autouse=True)
def clean_pubsub():
    """Drop pub/sub subscriptions left over from a previous test."""
    yield
    pub.unsubAll()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = MagicMock()
        mock_stream = MagicMock()

        # Configure mock stream
        mock_stream.is_active.return_value = False
        mock_stream.start_stream.return_value = None
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.get_default_input_device_info.return_value = {
            'index': 0,
            'name': 'Mock Microphone',
            'maxInputChannels': 1,
        }
        mock_pyaudio_instance.is_format_supported.return_value = True
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None

        # Configure mock PyAudio class
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def stream_feeder(mock_pyaudio):
    """Push int16 blocks through the callback PortAudio would call.

    Must be used after the stream has been opened.
    """
    def feed(samples: np.ndarray, block_size: int = 1024) -> int:
        callback = mock_pyaudio['instance'].open.call_args.kwargs['stream_callback']
        pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
        blocks = 0
        for start in range(0, len(pcm), block_size):
            block = pcm[start:start + block_size]
            callback(block.tobytes(), len(block), {}, 0)
            blocks += 1
        return blocks

    return feed


@pytest.fixture
def audio_test_data():
    """Generate various audio test data patterns."""
    def generate_audio(pattern="sine", duration_seconds=1.0, sample_rate=44100, frequency=440.0):
        """Generate float32 audio for testing.

        Args:
            pattern: Type of audio pattern ('sine', 'noise', 'silence')
            duration_seconds: Duration of audio
            sample_rate: Sample rate in Hz
            frequency: Sine frequency in Hz

        Returns:
            np.ndarray: mono float32 samples in [-1, 1]
        """
        samples = int(duration_seconds * sample_rate)

        if pattern == "sine":
            t = np.arange(samples) / sample_rate
            wave_data = 0.8 * np.sin(2 * np.pi * frequency * t)
        elif pattern == "noise":
            wave_data = np.random.uniform(-0.5, 0.5, samples)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        return wave_data.astype(np.float32)

    return generate_audio


@pytest.fixture
def state_events():
    """Collect recorder state events published on the default topic."""
    events = []

    def listener(event):
        events.append(event)

    # pypubsub holds listeners weakly; this frame keeps it alive until teardown
    pub.subscribe(listener, "recorder.state")
    yield events
