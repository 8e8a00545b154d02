"""
Resolution policies: combine per-source verdicts into one canonical status.

Every policy is a pure function of the verdict sequence it is given (the
timestamp is the only non-derived field) and copies every verdict into the
result's results_summary, in the order supplied.

Policies:
    priority_fallback - first decisive verdict in priority order wins
    severity_override - any CLOSED, else any DELAYED, else OPEN consensus
    majority_vote - most common decisive verdict, CLOSED winning ties with DELAYED
"""

import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import Dict, Optional, Sequence, Tuple, Type

from ..config.errors import ConfigError
from ..ingest.sources import SourceVerdict, Verdict, by_priority
from .models import (
    ALL_SOURCES_FAILED,
    NO_SOURCES_CONSULTED,
    CanonicalStatus,
    ResolutionResult,
    utc_now_iso,
)

logger = logging.getLogger(__name__)


class ResolutionPolicy(ABC):
    """Base class for resolution strategies."""

    name: str = ""

    def __init__(self, safe_default: CanonicalStatus = CanonicalStatus.UNKNOWN):
        self.safe_default = CanonicalStatus(safe_default)

    @abstractmethod
    def _decide(self, verdicts: Sequence[SourceVerdict]) -> Optional[Tuple[CanonicalStatus, str]]:
        """Return (status, attribution), or None when no source was decisive."""
        pass

    def resolve(self, verdicts: Sequence[SourceVerdict], timestamp: Optional[str] = None) -> ResolutionResult:
        verdicts = tuple(verdicts)
        timestamp = timestamp or utc_now_iso()

        decided = self._decide(verdicts)
        if decided is not None:
            status, source = decided
            return ResolutionResult(
                status=status,
                timestamp=timestamp,
                source=source,
                results_summary=verdicts,
            )

        return ResolutionResult(
            status=self.safe_default,
            timestamp=timestamp,
            source=None,
            results_summary=verdicts,
            error=self._failure_message(verdicts),
        )

    def _failure_message(self, verdicts: Sequence[SourceVerdict]) -> str:
        return ALL_SOURCES_FAILED if verdicts else NO_SOURCES_CONSULTED


class PriorityFallbackPolicy(ResolutionPolicy):
    """Walk sources in priority order; the first decisive verdict wins."""

    name = "priority_fallback"

    def _decide(self, verdicts):
        for v in by_priority(list(verdicts)):
            if v.verdict.is_decisive:
                return CanonicalStatus.from_verdict(v.verdict), v.name
        return None

    def _failure_message(self, verdicts):
        if not verdicts:
            return NO_SOURCES_CONSULTED
        first = by_priority(list(verdicts))[0]
        return f"{ALL_SOURCES_FAILED}; first error from {first.name}: {first.error}"


class SeverityOverridePolicy(ResolutionPolicy):
    """Bad news from any single source wins: CLOSED > DELAYED > OPEN."""

    name = "severity_override"

    def _decide(self, verdicts):
        for severe in (Verdict.CLOSED, Verdict.DELAYED):
            for v in verdicts:
                if v.verdict is severe:
                    return CanonicalStatus.from_verdict(severe), v.name

        open_count = sum(1 for v in verdicts if v.verdict is Verdict.OPEN)
        if open_count > 0:
            return CanonicalStatus.OPEN, f"consensus of {open_count} sources"
        return None


class MajorityVotePolicy(ResolutionPolicy):
    """Count decisive verdicts by kind; the largest count wins."""

    name = "majority_vote"

    def _decide(self, verdicts):
        counts = Counter(v.verdict for v in verdicts if v.verdict.is_decisive)
        closed, delayed, opened = counts[Verdict.CLOSED], counts[Verdict.DELAYED], counts[Verdict.OPEN]

        if closed > opened and closed >= delayed:
            winner = Verdict.CLOSED
        elif delayed > opened and delayed > closed:
            winner = Verdict.DELAYED
        elif opened > 0:
            winner = Verdict.OPEN
        else:
            return None

        first = next(v.name for v in verdicts if v.verdict is winner)
        return CanonicalStatus.from_verdict(winner), f"{first} (majority of {counts[winner]} sources)"


POLICIES: Dict[str, Type[ResolutionPolicy]] = {
    cls.name: cls for cls in (PriorityFallbackPolicy, SeverityOverridePolicy, MajorityVotePolicy)
}


def get_policy(name: str, safe_default: CanonicalStatus = CanonicalStatus.UNKNOWN) -> ResolutionPolicy:
    """Instantiate a policy by configured name."""
    try:
        cls = POLICIES[name]
    except KeyError:
        raise ConfigError(f"Unknown resolution_strategy '{name}'. Allowed: {sorted(POLICIES)}") from None
    return cls(safe_default)
