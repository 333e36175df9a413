"""Audio-related data models."""

import struct
from dataclasses import dataclass
from typing import Optional

import numpy as np

SAMPLE_RATE = 44100
WAV_HEADER_SIZE = 44
BYTES_PER_SAMPLE = 2


@dataclass(frozen=True)
class CaptureConstraints:
    """Fixed microphone format requested from the host audio system.

    Voice-call processing (echo cancellation, noise suppression, AGC)
    distorts or removes music played through speakers, so it stays off.
    """
    channel_count: int = 1
    sample_rate: int = SAMPLE_RATE
    sample_size: int = 16
    echo_cancellation: bool = False
    noise_suppression: bool = False
    auto_gain_control: bool = False
    device_index: Optional[int] = None
    frames_per_buffer: int = 1024


@dataclass(frozen=True, eq=False)
class FrequencySnapshot:
    """Smoothed byte magnitudes for one rendered frame."""
    magnitudes: np.ndarray  # uint8, one value per frequency bin
    captured_at: float

    @property
    def bin_count(self) -> int:
        return len(self.magnitudes)


@dataclass(frozen=True)
class WavPayload:
    """Canonical mono 16-bit PCM WAV bytes ready for upload."""
    data: bytes
    sample_rate: int = SAMPLE_RATE

    @property
    def data_size(self) -> int:
        """Size of the `data` sub-chunk in bytes."""
        return struct.unpack_from("<I", self.data, 40)[0]

    @property
    def sample_count(self) -> int:
        return self.data_size // BYTES_PER_SAMPLE

    @property
    def duration_seconds(self) -> float:
        return self.sample_count / self.sample_rate

    def __len__(self) -> int:
        return len(self.data)

    def __bytes__(self) -> bytes:
        return self.data


@dataclass
class RecorderStats:
    """Read-only snapshot of the recorder for status displays."""
    state: str
    duration_seconds: float
    total_chunks: int
    captured_frames: int
    capture_format: Optional[str]
    error: Optional[str]
