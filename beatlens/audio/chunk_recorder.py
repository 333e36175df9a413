"""Compressed capture in fixed-interval chunks."""

import asyncio
import io
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import soundfile as sf

from ..exceptions import NoCaptureFormatError
from ..models.audio import SAMPLE_RATE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureFormat:
    """A compressed container/codec pair libsndfile can stream."""
    name: str
    container: str
    subtype: str
    sample_rates: Optional[Tuple[int, ...]] = None  # None = any rate

    def supports_rate(self, sample_rate: int) -> bool:
        return self.sample_rates is None or sample_rate in self.sample_rates


# Most preferred first. Opus only runs at its native rates.
PREFERRED_FORMATS: Tuple[CaptureFormat, ...] = (
    CaptureFormat("audio/ogg;codecs=opus", "OGG", "OPUS", (48000, 24000, 16000, 12000, 8000)),
    CaptureFormat("audio/ogg;codecs=vorbis", "OGG", "VORBIS"),
    CaptureFormat("audio/flac", "FLAC", "PCM_16"),
)


def is_format_available(capture_format: CaptureFormat, sample_rate: int) -> bool:
    """Probe libsndfile for the container/codec and check the rate."""
    return capture_format.supports_rate(sample_rate) and sf.check_format(
        capture_format.container, capture_format.subtype
    )


def select_capture_format(
    sample_rate: int = SAMPLE_RATE,
    preferences: Sequence[CaptureFormat] = PREFERRED_FORMATS,
    probe: Callable[[CaptureFormat, int], bool] = is_format_available,
) -> CaptureFormat:
    """Return the first entry of ``preferences`` the probe accepts.

    Raises:
        NoCaptureFormatError: if none is available
    """
    for capture_format in preferences:
        if probe(capture_format, sample_rate):
            logger.info(f"Selected capture format: {capture_format.name}")
            return capture_format
        logger.debug(f"Capture format unavailable at {sample_rate}Hz: {capture_format.name}")
    raise NoCaptureFormatError(preferences)


class SoundFileEncoder:
    """Streams float blocks into an in-memory compressed container."""

    def __init__(self, capture_format: CaptureFormat, sample_rate: int, channels: int = 1):
        self._buffer = io.BytesIO()
        self._file = sf.SoundFile(
            self._buffer,
            mode="w",
            samplerate=sample_rate,
            channels=channels,
            format=capture_format.container,
            subtype=capture_format.subtype,
        )
        self._read_pos = 0
        self._emitted = bytearray()
        self.rewritten: Optional[bytes] = None

    def write(self, samples: np.ndarray) -> None:
        self._file.write(samples)

    def drain(self) -> bytes:
        """Bytes produced since the previous drain."""
        data = self._buffer.getvalue()[self._read_pos:]
        self._read_pos += len(data)
        self._emitted += data
        return data

    def close(self) -> bytes:
        """Finish the stream and return the trailing bytes.

        Containers that patch their header on close (FLAC writes its total
        length into STREAMINFO) change bytes that were already drained;
        the corrected prefix is left in ``rewritten``.
        """
        if not self._file.closed:
            self._file.close()
        prefix = self._buffer.getvalue()[:self._read_pos]
        if prefix != self._emitted:
            self.rewritten = prefix
        return self.drain()


class ChunkRecorder:
    """Records compressed audio from a microphone session in timeslices."""

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        timeslice_ms: int = 250,
        capture_format: Optional[CaptureFormat] = None,
        encoder_factory: Callable[[CaptureFormat, int], SoundFileEncoder] = SoundFileEncoder,
    ):
        """Initialize chunk recorder.

        Args:
            sample_rate: Rate of the incoming blocks
            timeslice_ms: Captured audio per chunk, in milliseconds
            capture_format: Fixed format; probed from PREFERRED_FORMATS when None
            encoder_factory: Builds the encoder on the first captured block
        """
        if timeslice_ms <= 0:
            raise ValueError(f"timeslice_ms must be positive, got {timeslice_ms}")

        self.sample_rate = sample_rate
        self.timeslice_frames = int(sample_rate * timeslice_ms / 1000)
        self.capture_format = capture_format or select_capture_format(sample_rate)
        self._encoder_factory = encoder_factory
        self._encoder = None
        self._microphone = None

        self.is_recording = False
        self.chunks: List[bytes] = []
        self.captured_frames = 0
        self._frames_since_chunk = 0
        self._chunk_due = False

    @property
    def mime_type(self) -> str:
        return self.capture_format.name

    def start(self, microphone=None) -> None:
        """Begin accepting blocks, optionally subscribing to a microphone session."""
        if self.is_recording:
            logger.warning("Chunk recorder already running")
            return

        self.chunks = []
        self.captured_frames = 0
        self._frames_since_chunk = 0
        self._chunk_due = False
        self.is_recording = True

        if microphone is not None:
            self._microphone = microphone
            microphone.add_listener(self.on_samples)
        logger.info(f"Chunk recorder started: {self.mime_type}, "
                    f"{self.timeslice_frames} frames per chunk")

    def on_samples(self, samples: np.ndarray) -> None:
        """Encode one block; emit a chunk once a timeslice has elapsed.

        A completed timeslice is emitted when the next block arrives, so a
        stop on the boundary flushes it as the final chunk instead of
        leaving an empty tail.
        """
        if not self.is_recording or not len(samples):
            return

        if self._encoder is None:
            self._encoder = self._encoder_factory(self.capture_format, self.sample_rate)

        if self._chunk_due:
            self._chunk_due = False
            self._append(self._encoder.drain())

        self._encoder.write(samples)
        self.captured_frames += len(samples)
        self._frames_since_chunk += len(samples)

        if self._frames_since_chunk >= self.timeslice_frames:
            self._frames_since_chunk %= self.timeslice_frames
            self._chunk_due = True

    async def stop(self) -> Tuple[bytes, ...]:
        """Flush the final partial chunk and return the complete chunk sequence."""
        if not self.is_recording:
            return tuple(self.chunks)

        self.is_recording = False
        self.detach()

        encoder, self._encoder = self._encoder, None
        if encoder is not None:
            loop = asyncio.get_running_loop()
            tail = await loop.run_in_executor(None, encoder.close)
            if encoder.rewritten is not None:
                self._patch_chunks(encoder.rewritten)
            self._append(tail)

        logger.info(f"Chunk recorder stopped: {len(self.chunks)} chunks, "
                    f"{self.captured_frames} frames")
        return tuple(self.chunks)

    def abort(self) -> None:
        """Stop without flushing. Unflushed audio is discarded."""
        self.is_recording = False
        self.detach()
        encoder, self._encoder = self._encoder, None
        if encoder is not None:
            encoder.close()

    def detach(self) -> None:
        if self._microphone is not None:
            self._microphone.remove_listener(self.on_samples)
            self._microphone = None

    def _patch_chunks(self, prefix: bytes) -> None:
        """Replace emitted chunk bytes with the encoder's finalized prefix."""
        offset = 0
        patched = []
        for chunk in self.chunks:
            patched.append(prefix[offset:offset + len(chunk)])
            offset += len(chunk)
        self.chunks = patched
        logger.debug(f"Encoder rewrote {len(prefix)} emitted bytes on close")

    def _append(self, data: bytes) -> None:
        if data:
            self.chunks.append(data)
            logger.debug(f"Chunk {len(self.chunks)}: {len(data)} bytes")
