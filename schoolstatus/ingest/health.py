"""
Source health tracking for fetch reliability monitoring.

Tracks per-source success/failure history and computes health status.
Health is diagnostic only (it never removes a source from a cycle) and lives
in memory for the life of the process.
"""

import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .sources import SourceVerdict, Verdict


# Health status thresholds
CONSECUTIVE_FAILURES_DEGRADED = 3
CONSECUTIVE_FAILURES_DOWN = 7

# Number of recent verdicts kept per source
HISTORY_LENGTH = 10


@dataclass
class SourceHealth:
    """Health status for a single source."""
    name: str
    last_success_at: Optional[str] = None
    last_failure_at: Optional[str] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    last_verdict: Optional[str] = None
    verdict_history: List[str] = field(default_factory=list)  # Last N cycles
    status: str = "OK"  # OK, DEGRADED, DOWN

    def update_status(self):
        """Update status based on consecutive failures."""
        if self.consecutive_failures >= CONSECUTIVE_FAILURES_DOWN:
            self.status = "DOWN"
        elif self.consecutive_failures >= CONSECUTIVE_FAILURES_DEGRADED:
            self.status = "DEGRADED"
        else:
            self.status = "OK"

    def _remember(self, verdict: Verdict):
        self.last_verdict = verdict.value
        self.verdict_history.append(verdict.value)
        if len(self.verdict_history) > HISTORY_LENGTH:
            self.verdict_history = self.verdict_history[-HISTORY_LENGTH:]

    def record_success(self, verdict: Verdict, timestamp: Optional[datetime] = None):
        """Record a fetch that produced a decisive verdict."""
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        self.last_success_at = timestamp.isoformat()
        self.consecutive_failures = 0
        self.last_error = None
        self._remember(verdict)
        self.update_status()

    def record_failure(self, error: str, timestamp: Optional[datetime] = None):
        """Record a failed fetch."""
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        self.last_failure_at = timestamp.isoformat()
        self.consecutive_failures += 1
        self.last_error = error
        self._remember(Verdict.ERROR)
        self.update_status()


class HealthTracker:
    """Tracks health for all sources across cycles."""

    def __init__(self):
        self.sources: Dict[str, SourceHealth] = {}
        self.last_updated_at: Optional[str] = None
        self._lock = threading.Lock()

    def get_or_create(self, name: str) -> SourceHealth:
        """Get existing source health or create new one."""
        if name not in self.sources:
            self.sources[name] = SourceHealth(name=name)
        return self.sources[name]

    def record(self, result: SourceVerdict, timestamp: Optional[datetime] = None):
        """Record one cycle's outcome for a source."""
        with self._lock:
            health = self.get_or_create(result.name)
            if result.verdict is Verdict.ERROR:
                health.record_failure(result.error or "unknown error", timestamp)
            else:
                health.record_success(result.verdict, timestamp)
            self.last_updated_at = (timestamp or datetime.now(timezone.utc)).isoformat()

    def get_summary(self) -> Dict[str, Any]:
        """Get summary of health across all sources."""
        with self._lock:
            statuses = {"OK": 0, "DEGRADED": 0, "DOWN": 0}
            for source in self.sources.values():
                statuses[source.status] = statuses.get(source.status, 0) + 1

            degraded_sources = [s.name for s in self.sources.values() if s.status == "DEGRADED"]
            down_sources = [s.name for s in self.sources.values() if s.status == "DOWN"]

            return {
                "total_sources": len(self.sources),
                "status_counts": statuses,
                "degraded_sources": degraded_sources,
                "down_sources": down_sources,
                "overall_status": "DOWN" if down_sources else ("DEGRADED" if degraded_sources else "OK"),
                "last_updated_at": self.last_updated_at,
            }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict."""
        summary = self.get_summary()
        with self._lock:
            sources = {k: asdict(v) for k, v in self.sources.items()}
        return {"sources": sources, "summary": summary}
