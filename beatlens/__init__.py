"""BeatLens: microphone capture, live spectrum and WAV encoding for song matching."""

__version__ = "0.1.0"
