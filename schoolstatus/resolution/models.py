"""Resolution result types."""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..ingest.sources import SourceVerdict, Verdict

ALL_SOURCES_FAILED = "All sources failed"
NO_SOURCES_CONSULTED = "No sources consulted"


class CanonicalStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    DELAYED = "DELAYED"
    UNKNOWN = "UNKNOWN"
    NO_REPORT = "NO REPORT / UNKNOWN"

    @classmethod
    def from_verdict(cls, verdict: Verdict) -> "CanonicalStatus":
        if not verdict.is_decisive:
            raise ValueError(f"{verdict.value} has no canonical status")
        return cls(verdict.value)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ResolutionResult:
    """Canonical answer for one resolution cycle plus its audit trail."""
    status: CanonicalStatus
    timestamp: str
    source: Optional[str]
    results_summary: Tuple[SourceVerdict, ...] = ()
    cached: bool = False
    error: Optional[str] = None

    @property
    def errors(self) -> List[Tuple[str, Optional[str]]]:
        """(name, error) for every source that failed this cycle."""
        return [(r.name, r.error) for r in self.results_summary if r.verdict is Verdict.ERROR]

    @property
    def is_decisive(self) -> bool:
        return self.status in (CanonicalStatus.OPEN, CanonicalStatus.CLOSED, CanonicalStatus.DELAYED)

    def as_cached(self) -> "ResolutionResult":
        return replace(self, cached=True)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "status": self.status.value,
            "timestamp": self.timestamp,
            "source": self.source,
            "results_summary": [r.to_dict() for r in self.results_summary],
            "cached": self.cached,
        }
        if self.error:
            payload["error"] = self.error
        return payload
