"""Match service response models.

Field meanings belong to the remote service; they are carried through
unchanged for display.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class MatchResult:
    """A single candidate song returned by the match service."""
    song_id: int
    title: str
    artist: Optional[str]
    confidence: float
    aligned_matches: int
    total_matches: int
    time_offset_seconds: float

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "MatchResult":
        return cls(
            song_id=data.get("songId"),
            title=data.get("title", ""),
            artist=data.get("artist"),
            confidence=float(data.get("confidence", 0.0)),
            aligned_matches=int(data.get("alignedMatches", 0)),
            total_matches=int(data.get("totalMatches", 0)),
            time_offset_seconds=float(data.get("timeOffsetSeconds", 0.0)),
        )


@dataclass
class MatchResponse:
    """Ranked candidates for one query."""
    results: List[MatchResult] = field(default_factory=list)
    query_fingerprints: int = 0
    query_duration_seconds: float = 0.0

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "MatchResponse":
        return cls(
            results=[MatchResult.from_json(r) for r in data.get("results", [])],
            query_fingerprints=int(data.get("queryFingerprints", 0)),
            query_duration_seconds=float(data.get("queryDurationSeconds", 0.0)),
        )
