"""Audio capture, analysis and transcoding."""

from .capture import MicrophoneSession
from .analyser import SpectralTap
from .chunk_recorder import ChunkRecorder, CaptureFormat, select_capture_format
from .transcoder import Transcoder, encode_wav, quantize

__all__ = [
    'MicrophoneSession',
    'SpectralTap',
    'ChunkRecorder',
    'CaptureFormat',
    'select_capture_format',
    'Transcoder',
    'encode_wav',
    'quantize',
]
