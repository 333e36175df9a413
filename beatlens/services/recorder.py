"""Recorder state machine: the only entry point the UI talks to.

    IDLE -> ACQUIRING -> RECORDING -> STOPPING -> TRANSCODING -> IDLE
    ACQUIRING / TRANSCODING -> ERROR -> IDLE

All mutation happens on the event loop thread; the state field alone
serializes start/stop, so commands issued in the wrong state are no-ops.
"""

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Callable, Optional

from pubsub import pub

from ..audio.analyser import SpectralTap
from ..audio.capture import MicrophoneSession
from ..audio.chunk_recorder import ChunkRecorder, select_capture_format
from ..audio.transcoder import Transcoder
from ..config import BeatLensConfig
from ..exceptions import BeatLensError, DecodeError, GENERIC_DECODE_MESSAGE
from ..models.audio import CaptureConstraints, FrequencySnapshot, RecorderStats, WavPayload
from ..models.events import RecorderEvent, RecorderState
from ..models.session import AudioSession

logger = logging.getLogger(__name__)


class RecorderStateMachine:
    """Owns one AudioSession at a time, from microphone grant to WAV payload."""

    def __init__(
        self,
        config: Optional[BeatLensConfig] = None,
        microphone_factory: Callable[[CaptureConstraints], MicrophoneSession] = MicrophoneSession,
        transcoder: Optional[Transcoder] = None,
        topic: str = "recorder.state",
    ):
        """Initialize the recorder.

        Args:
            config: Application configuration (defaults when None)
            microphone_factory: Builds a MicrophoneSession from constraints
            transcoder: Converts chunk sequences into WAV payloads
            topic: Pub/sub topic for state transitions
        """
        self.config = config or BeatLensConfig()
        self.constraints = self.config.get_capture_constraints()
        self.timeslice_ms = int(self.config.get('audio.timeslice_ms', 250))
        self.tick_seconds = int(self.config.get('audio.tick_ms', 100)) / 1000.0

        self._microphone_factory = microphone_factory
        self._transcoder = transcoder or Transcoder(self.constraints.sample_rate)
        self.topic = topic

        self._state = RecorderState.IDLE
        self._session: Optional[AudioSession] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._duration = 0.0
        self._error: Optional[str] = None
        self._total_chunks = 0
        self._captured_frames = 0
        self.capture_format: Optional[str] = None

    # Read-only accessors: safe to poll every frame, with or without a session

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is RecorderState.RECORDING

    @property
    def duration(self) -> float:
        """Elapsed seconds of the current or last recording."""
        return self._duration

    @property
    def last_error(self) -> Optional[str]:
        return self._error

    @property
    def spectral_tap(self) -> Optional[SpectralTap]:
        session = self._session
        return session.tap if session is not None else None

    def spectral_snapshot(self) -> Optional[FrequencySnapshot]:
        """Current frequency snapshot while recording, otherwise None."""
        if self._state is not RecorderState.RECORDING:
            return None
        tap = self.spectral_tap
        return tap.snapshot() if tap is not None else None

    def get_recording_stats(self) -> RecorderStats:
        session = self._session
        if session is not None:
            chunks = len(session.recorder.chunks)
            frames = session.recorder.captured_frames
        else:
            chunks, frames = self._total_chunks, self._captured_frames
        return RecorderStats(
            state=self._state.value,
            duration_seconds=self._duration,
            total_chunks=chunks,
            captured_frames=frames,
            capture_format=self.capture_format,
            error=self._error,
        )

    # Commands

    async def start(self) -> None:
        """Acquire the microphone and begin recording.

        Ignored unless IDLE. Failures are surfaced through last_error and
        leave the recorder IDLE with nothing held open.
        """
        if self._state is not RecorderState.IDLE:
            logger.warning(f"start() ignored while {self._state.value}")
            return

        self._error = None
        self._duration = 0.0
        self._total_chunks = 0
        self._captured_frames = 0
        self._set_state(RecorderState.ACQUIRING)

        resources = AsyncExitStack()
        try:
            capture_format = select_capture_format(self.constraints.sample_rate)

            microphone = self._microphone_factory(self.constraints)
            resources.push_async_callback(microphone.release)
            await microphone.acquire()

            tap = SpectralTap(
                fft_size=int(self.config.get('analysis.fft_size', 256)),
                smoothing=float(self.config.get('analysis.smoothing', 0.8)),
                min_decibels=float(self.config.get('analysis.min_decibels', -100.0)),
                max_decibels=float(self.config.get('analysis.max_decibels', -30.0)),
            )
            tap.attach(microphone)
            resources.callback(tap.detach)

            recorder = ChunkRecorder(
                sample_rate=self.constraints.sample_rate,
                timeslice_ms=self.timeslice_ms,
                capture_format=capture_format,
            )
            recorder.start(microphone)
            resources.callback(recorder.abort)

            microphone.start()
        except BeatLensError as e:
            await resources.aclose()
            logger.error(f"Could not start recording: {e.detail}")
            self._fail(e.detail)
            return
        except BaseException:
            await resources.aclose()
            self._set_state(RecorderState.IDLE)
            raise

        loop = asyncio.get_running_loop()
        self._session = AudioSession(
            microphone=microphone,
            tap=tap,
            recorder=recorder,
            started_at=loop.time(),
            resources=resources,
        )
        self.capture_format = capture_format.name
        self._tick_task = asyncio.ensure_future(self._tick(self._session))
        resources.push_async_callback(self._cancel_tick)

        self._set_state(RecorderState.RECORDING)
        logger.info(f"Recording started ({capture_format.name})")

    async def stop(self) -> Optional[WavPayload]:
        """Stop recording and transcode what was captured.

        Returns:
            The WAV payload, or None if not recording, nothing was captured,
            or the audio could not be decoded (last_error is set).
        """
        if self._state is not RecorderState.RECORDING:
            logger.warning(f"stop() ignored while {self._state.value}")
            return None

        session = self._session
        loop = asyncio.get_running_loop()
        self._set_state(RecorderState.STOPPING)

        try:
            await session.microphone.stop_capture()
            chunks = await session.recorder.stop()
        except asyncio.CancelledError:
            await self._end_session(session, loop)
            self._set_state(RecorderState.IDLE)
            raise
        except Exception as e:
            logger.error(f"Error stopping recording: {e}", exc_info=True)
            await self._end_session(session, loop)
            self._fail(GENERIC_DECODE_MESSAGE)
            return None

        await self._end_session(session, loop)

        if not chunks:
            logger.info("Recording stopped before any audio was captured")
            self._set_state(RecorderState.IDLE)
            return None

        self._set_state(RecorderState.TRANSCODING)
        try:
            payload = await self._transcoder.transcode(chunks)
        except asyncio.CancelledError:
            self._set_state(RecorderState.IDLE)
            raise
        except DecodeError as e:
            logger.error(f"Transcoding failed: {e.detail}")
            self._fail(GENERIC_DECODE_MESSAGE)
            return None
        except Exception as e:
            logger.error(f"Unexpected error while transcoding: {e}", exc_info=True)
            self._fail(GENERIC_DECODE_MESSAGE)
            return None

        self._set_state(RecorderState.IDLE)
        logger.info(f"Recording produced {len(payload)} byte WAV "
                    f"({payload.duration_seconds:.2f}s)")
        return payload

    async def close(self) -> None:
        """Abandon any active session, releasing the microphone."""
        session = self._session
        if session is None:
            return
        logger.info(f"Abandoning session in state {self._state.value}")
        await self._end_session(session, asyncio.get_running_loop())
        self._set_state(RecorderState.IDLE)

    async def __aenter__(self) -> "RecorderStateMachine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # Internals

    async def _end_session(self, session: AudioSession, loop) -> None:
        self._duration = loop.time() - session.started_at
        self._total_chunks = len(session.recorder.chunks)
        self._captured_frames = session.recorder.captured_frames
        self._session = None
        await session.resources.aclose()

    async def _tick(self, session: AudioSession) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.tick_seconds)
            self._duration = loop.time() - session.started_at

    async def _cancel_tick(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _fail(self, message: str) -> None:
        self._error = message
        self._set_state(RecorderState.ERROR)
        self._set_state(RecorderState.IDLE)

    def _set_state(self, state: RecorderState) -> None:
        previous, self._state = self._state, state
        logger.debug(f"Recorder state: {previous.value} -> {state.value}")
        pub.sendMessage(self.topic, event=RecorderEvent(previous=previous, state=state, error=self._error))
