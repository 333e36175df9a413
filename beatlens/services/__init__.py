"""Services layer for BeatLens application logic."""

from .recorder import RecorderStateMachine
from .match_client import MatchClient

__all__ = [
    "RecorderStateMachine",
    "MatchClient",
]
