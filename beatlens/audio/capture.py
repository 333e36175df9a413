"""Microphone acquisition with guaranteed release.

PortAudio delivers input blocks on its own thread. Every block is handed
to the owning asyncio loop with ``call_soon_threadsafe`` so listeners
(the spectral tap and the chunk recorder) only ever run on the loop.
"""

import asyncio
import logging
from typing import Callable, List, Optional

import numpy as np
import pyaudio

from ..exceptions import MicrophonePermissionError, UnsupportedConstraintsError
from ..models.audio import CaptureConstraints

logger = logging.getLogger(__name__)

# PortAudio errors meaning the device exists but cannot produce this format
FORMAT_ERROR_CODES = frozenset({
    pyaudio.paInvalidSampleRate,
    pyaudio.paInvalidChannelCount,
    pyaudio.paSampleFormatNotSupported,
})

SampleListener = Callable[[np.ndarray], None]


class MicrophoneSession:
    """Exclusive handle on one microphone input stream."""

    def __init__(self, constraints: Optional[CaptureConstraints] = None):
        """Initialize an unopened session.

        Args:
            constraints: Requested capture format (mono, 44.1 kHz, 16-bit by default)
        """
        self.constraints = constraints or CaptureConstraints()
        self.device_name: Optional[str] = None

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._listeners: List[SampleListener] = []

        # Statistics tracking
        self.total_frames = 0
        self.overflow_count = 0

    @property
    def is_open(self) -> bool:
        return self.stream is not None

    def add_listener(self, listener: SampleListener) -> None:
        """Register a callable that receives each float32 block on the loop thread."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: SampleListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def acquire(self) -> "MicrophoneSession":
        """Open the input stream without starting it.

        Raises:
            MicrophonePermissionError: access denied or no input device
            UnsupportedConstraintsError: the device cannot honour the constraints
        """
        self._check_constraints()
        self._loop = asyncio.get_running_loop()

        future = self._loop.run_in_executor(None, self._open_stream)
        try:
            await asyncio.shield(future)
        except asyncio.CancelledError:
            # The open call keeps running in its worker; release once it lands
            try:
                await future
            except Exception:
                pass
            await self.release()
            raise
        except BaseException:
            await self.release()
            raise
        return self

    def start(self) -> None:
        """Begin delivering audio blocks to listeners.

        Raises:
            MicrophonePermissionError: the device is busy or was lost
            UnsupportedConstraintsError: PortAudio rejected the stream format
        """
        if self.stream is None:
            raise RuntimeError("Microphone stream is not open")
        try:
            self.stream.start_stream()
        except OSError as e:
            raise self._translate_error(e) from e
        logger.info("Microphone capture started")

    async def stop_capture(self) -> None:
        """Stop the hardware stream and wait until every captured block is dispatched."""
        stream = self.stream
        if stream is None:
            return
        await self._loop.run_in_executor(None, stream.stop_stream)
        # Blocks queued by the PortAudio thread were scheduled before the
        # executor completion above, so they have all run by now.
        logger.info(f"Microphone capture stopped after {self.total_frames} frames")
        if self.overflow_count:
            logger.warning(f"Input overflowed {self.overflow_count} times; some audio was dropped")

    async def release(self) -> None:
        """Stop and close the stream and terminate PortAudio. Safe to call repeatedly."""
        stream, self.stream = self.stream, None
        pa, self.pyaudio_instance = self.pyaudio_instance, None
        self._listeners.clear()

        if stream is None and pa is None:
            return

        loop = self._loop or asyncio.get_running_loop()
        await loop.run_in_executor(None, self._close_stream, stream, pa)
        logger.info("Microphone released")

    async def __aenter__(self) -> "MicrophoneSession":
        return await self.acquire()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    def _check_constraints(self) -> None:
        c = self.constraints
        if c.echo_cancellation or c.noise_suppression or c.auto_gain_control:
            raise UnsupportedConstraintsError(
                "Voice processing (echo cancellation, noise suppression, gain control) "
                "is not available for raw capture"
            )
        if c.sample_size != 16:
            raise UnsupportedConstraintsError(f"Unsupported sample size: {c.sample_size} bits")
        if c.channel_count < 1:
            raise UnsupportedConstraintsError(f"Invalid channel count: {c.channel_count}")

    def _open_stream(self) -> None:
        """Runs in an executor thread: resolve the device, probe the format, open."""
        self.pyaudio_instance = pyaudio.PyAudio()
        device_index = self._resolve_device()
        c = self.constraints

        try:
            self.pyaudio_instance.is_format_supported(
                c.sample_rate,
                input_device=device_index,
                input_channels=c.channel_count,
                input_format=pyaudio.paInt16,
            )
        except ValueError as e:
            reason = e.args[0] if e.args else "format rejected"
            raise UnsupportedConstraintsError(
                f"{self.device_name or 'Input device'} cannot record "
                f"{c.channel_count}ch/{c.sample_rate}Hz/16-bit: {reason}"
            ) from e

        try:
            self.stream = self.pyaudio_instance.open(
                format=pyaudio.paInt16,
                channels=c.channel_count,
                rate=c.sample_rate,
                input=True,
                input_device_index=device_index,
                frames_per_buffer=c.frames_per_buffer,
                stream_callback=self._on_input,
                start=False,
            )
        except OSError as e:
            raise self._translate_error(e) from e

        logger.info(f"Audio stream opened on '{self.device_name}': {c.sample_rate}Hz, "
                    f"{c.channel_count}ch, {c.frames_per_buffer} frames/buffer")

    def _resolve_device(self) -> int:
        pa = self.pyaudio_instance
        index = self.constraints.device_index
        try:
            if index is None:
                info = pa.get_default_input_device_info()
            else:
                info = pa.get_device_info_by_index(index)
        except (OSError, ValueError) as e:
            raise MicrophonePermissionError(f"No microphone available: {e}") from e

        if info.get('maxInputChannels', 0) < self.constraints.channel_count:
            raise UnsupportedConstraintsError(
                f"Device '{info.get('name')}' has no {self.constraints.channel_count}-channel input"
            )

        self.device_name = info.get('name')
        logger.debug(f"Resolved input device [{info.get('index')}]: {self.device_name}")
        return info.get('index', index)

    @staticmethod
    def _translate_error(error: OSError) -> Exception:
        message = error.strerror or str(error)
        if error.errno in FORMAT_ERROR_CODES:
            return UnsupportedConstraintsError(message)
        return MicrophonePermissionError(message or "Microphone access denied")

    @staticmethod
    def _close_stream(stream, pa) -> None:
        try:
            if stream is not None:
                if stream.is_active():
                    stream.stop_stream()
                stream.close()
        finally:
            if pa is not None:
                pa.terminate()

    def _on_input(self, in_data, frame_count, time_info, status):
        """PortAudio callback thread."""
        if status & pyaudio.paInputOverflow:
            self.overflow_count += 1

        samples = np.frombuffer(in_data, dtype=np.int16).astype(np.float32) / 32768.0
        if self.constraints.channel_count > 1:
            samples = samples.reshape(-1, self.constraints.channel_count)

        try:
            self._loop.call_soon_threadsafe(self._dispatch, samples)
        except RuntimeError:
            # Event loop already closed
            return (None, pyaudio.paComplete)
        return (None, pyaudio.paContinue)

    def _dispatch(self, samples: np.ndarray) -> None:
        if self.stream is None:
            return
        self.total_frames += len(samples)
        for listener in list(self._listeners):
            listener(samples)
