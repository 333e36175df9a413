"""Compressed chunks -> linear PCM -> canonical 16-bit mono WAV."""

import asyncio
import io
import logging
import wave
from math import gcd
from typing import Sequence, Tuple

import numpy as np
import soundfile as sf
from scipy.signal import resample_poly

from ..exceptions import DecodeError
from ..models.audio import SAMPLE_RATE, WavPayload

logger = logging.getLogger(__name__)

DECODE_BLOCK_FRAMES = 65536


def decode(data: bytes) -> Tuple[np.ndarray, int]:
    """Decode a compressed container at its native rate.

    Returns:
        (float32 array of shape (frames, channels), sample rate)

    Raises:
        DecodeError: on empty input, unreadable data or zero decoded frames
    """
    if not data:
        raise DecodeError("No audio data to decode")

    blocks = []
    try:
        with sf.SoundFile(io.BytesIO(data)) as f:
            sample_rate = f.samplerate
            # Streams from a live encoder may not declare their length,
            # so read until the decoder runs dry.
            while True:
                block = f.read(DECODE_BLOCK_FRAMES, dtype="float32", always_2d=True)
                if not len(block):
                    break
                blocks.append(block)
    except (RuntimeError, ValueError, TypeError) as e:
        raise DecodeError(f"Could not decode captured audio: {e}") from e

    if not blocks:
        raise DecodeError("Captured audio contains no samples")

    return np.concatenate(blocks), sample_rate


def resample(audio: np.ndarray, orig_sr: int, target_sr: int) -> np.ndarray:
    """Resample *audio* from *orig_sr* to *target_sr* using the polyphase method."""
    if orig_sr == target_sr:
        return audio
    g = gcd(orig_sr, target_sr)
    return resample_poly(audio, target_sr // g, orig_sr // g).astype(np.float32)


def quantize(samples: np.ndarray) -> np.ndarray:
    """Float samples to int16.

    Clamped to [-1, 1]; negatives scale by 32768 and the rest by 32767,
    truncating toward zero. NaN becomes 0.
    """
    s = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0)
    s = np.clip(s, -1.0, 1.0)
    scaled = np.where(s < 0, s * 32768.0, s * 32767.0)
    return np.trunc(scaled).astype(np.int16)


def encode_wav(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> WavPayload:
    """Encode mono float samples as a 44-byte-header PCM WAV."""
    pcm = quantize(samples)

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm.tobytes())

    return WavPayload(data=buffer.getvalue(), sample_rate=sample_rate)


class Transcoder:
    """Turns a recorder's chunk sequence into a WavPayload."""

    def __init__(self, sample_rate: int = SAMPLE_RATE):
        self.sample_rate = sample_rate
        self.invocations = 0

    async def transcode(self, chunks: Sequence[bytes]) -> WavPayload:
        """Decode off the event loop; see convert()."""
        self.invocations += 1
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.convert, tuple(chunks))

    def convert(self, chunks: Sequence[bytes]) -> WavPayload:
        """Decode the concatenated chunks, keep channel 0, resample and encode.

        Raises:
            DecodeError: if the chunks are empty or malformed
        """
        decoded, native_rate = decode(b"".join(chunks))
        mono = decoded[:, 0]
        pcm = resample(mono, native_rate, self.sample_rate)

        payload = encode_wav(pcm, self.sample_rate)
        logger.info(f"Transcoded {len(chunks)} chunks at {native_rate}Hz into "
                    f"{payload.sample_count} samples ({payload.duration_seconds:.2f}s)")
        return payload
