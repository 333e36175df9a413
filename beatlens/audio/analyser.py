"""Read-only spectral tap over the live microphone stream.

Produces the same byte magnitudes a browser AnalyserNode reports:
Blackman-windowed FFT of the newest ``fft_size`` samples, magnitudes
smoothed across calls, converted to decibels and mapped linearly from
[min_decibels, max_decibels] onto 0..255.
"""

import logging
import time
from typing import Callable, Optional

import numpy as np
from scipy.signal import get_window

from ..models.audio import FrequencySnapshot

logger = logging.getLogger(__name__)


class SpectralTap:
    """Pull-based frequency snapshots for the visualizer."""

    def __init__(
        self,
        fft_size: int = 256,
        smoothing: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the tap.

        Args:
            fft_size: Analysis window in samples (power of two); yields fft_size/2 bins
            smoothing: Weight of the previous frame in the exponential average (0..1)
            min_decibels: Level mapped to byte value 0
            max_decibels: Level mapped to byte value 255
            clock: Timestamp source for snapshots
        """
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two >= 32, got {fft_size}")
        if not 0.0 <= smoothing <= 1.0:
            raise ValueError(f"smoothing must be within [0, 1], got {smoothing}")
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be below max_decibels")

        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self._clock = clock

        self._window = get_window("blackman", fft_size)
        self._samples = np.zeros(fft_size, dtype=np.float32)
        self._smoothed = np.zeros(self.frequency_bin_count)
        self._microphone = None

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    @property
    def attached(self) -> bool:
        return self._microphone is not None

    def attach(self, microphone) -> None:
        """Start observing a microphone session's blocks."""
        self._microphone = microphone
        microphone.add_listener(self.feed)
        logger.debug(f"SpectralTap attached: fft_size={self.fft_size}, smoothing={self.smoothing}")

    def detach(self) -> None:
        """Stop observing and forget all analysis state."""
        if self._microphone is not None:
            self._microphone.remove_listener(self.feed)
            self._microphone = None
        self._samples = np.zeros(self.fft_size, dtype=np.float32)
        self._smoothed = np.zeros(self.frequency_bin_count)
        logger.debug("SpectralTap detached")

    def feed(self, samples: np.ndarray) -> None:
        """Append a block of float samples to the analysis window."""
        if samples.ndim > 1:
            samples = samples[:, 0]
        n = self.fft_size
        if len(samples) >= n:
            self._samples = np.array(samples[-n:], dtype=np.float32)
        elif len(samples):
            self._samples = np.concatenate((self._samples[len(samples):], samples.astype(np.float32)))

    def snapshot(self) -> Optional[FrequencySnapshot]:
        """Current smoothed spectrum, or None when no stream is attached.

        Each call advances the smoothing by one frame.
        """
        if not self.attached:
            return None

        spectrum = np.fft.rfft(self._samples * self._window)[:self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size
        self._smoothed = self.smoothing * self._smoothed + (1.0 - self.smoothing) * magnitude

        with np.errstate(divide="ignore"):
            decibels = 20.0 * np.log10(self._smoothed)
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor(scale * (decibels - self.min_decibels))

        magnitudes = np.clip(scaled, 0, 255).astype(np.uint8)
        magnitudes.setflags(write=False)
        return FrequencySnapshot(magnitudes=magnitudes, captured_at=self._clock())
