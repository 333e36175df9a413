"""
BeatLens exception hierarchy.

All capture-pipeline exceptions inherit from BeatLensError so the
recorder state machine can translate them into user-facing messages
in one place.
"""

GENERIC_DECODE_MESSAGE = "Failed to process recorded audio. Please try again."


class BeatLensError(Exception):
    """Base exception for all BeatLens errors."""

    def __init__(self, detail: str = "An unexpected error occurred") -> None:
        self.detail = detail
        super().__init__(detail)


class CaptureError(BeatLensError):
    """Raised when the microphone cannot be acquired."""


class MicrophonePermissionError(CaptureError, PermissionError):
    """Raised when microphone access is denied or no input device exists."""

    def __init__(self, detail: str = "Microphone access denied") -> None:
        super().__init__(detail)


class UnsupportedConstraintsError(CaptureError):
    """Raised when the input device cannot honour the capture constraints."""

    def __init__(self, detail: str = "Requested audio format is not supported") -> None:
        super().__init__(detail)


class NoCaptureFormatError(BeatLensError):
    """Raised when no compressed capture format is available on this host."""

    def __init__(self, candidates) -> None:
        names = ", ".join(c.name for c in candidates)
        super().__init__(f"No supported capture format among: {names}")


class DecodeError(BeatLensError):
    """Raised when captured audio is empty or cannot be decoded.

    The detail is for logs only; users see GENERIC_DECODE_MESSAGE.
    """

    def __init__(self, detail: str = "Captured audio could not be decoded") -> None:
        super().__init__(detail)


class MatchServiceError(BeatLensError):
    """Raised when the remote match service rejects a query."""

    def __init__(self, detail: str, status: int = 0) -> None:
        self.status = status
        super().__init__(detail)
