"""
Source registry types: verdicts, extraction strategies and source descriptors.

Descriptors are built once from config/status.yaml at startup and shared
read-only across resolution cycles.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


# Default per-source fetch timeout (seconds)
DEFAULT_TIMEOUT_SECONDS = 5.0

# Default number of characters inspected after an entity mention
DEFAULT_CONTEXT_WINDOW = 200


class Verdict(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    DELAYED = "DELAYED"
    ERROR = "ERROR"

    @property
    def is_decisive(self) -> bool:
        return self is not Verdict.ERROR


class ExtractionStrategy(str, Enum):
    """How a fetched document is narrowed before keyword matching."""
    SELECTOR = "selector"   # CSS region first, whole document if absent
    WINDOWED = "windowed"   # bounded window after each entity mention
    DOCUMENT = "document"   # whole document


@dataclass(frozen=True)
class Entity:
    """The organization being tracked, with its equivalent names."""
    name: str
    aliases: Tuple[str, ...] = ()

    @property
    def names(self) -> List[str]:
        """Display name plus aliases, without duplicates."""
        seen = []
        for n in (self.name,) + tuple(self.aliases):
            if n and n not in seen:
                seen.append(n)
        return seen


@dataclass(frozen=True)
class SourceDescriptor:
    """Static description of one external status source."""
    name: str
    url: str
    strategy: ExtractionStrategy = ExtractionStrategy.WINDOWED
    priority: int = 100
    selector: Optional[str] = None
    context_window: Optional[int] = None
    require_mention: bool = True
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SourceVerdict:
    """One source's classified signal for one resolution cycle."""
    name: str
    verdict: Verdict
    error: Optional[str] = None
    priority: int = 100

    def to_dict(self) -> Dict[str, str]:
        d = {"name": self.name, "status": self.verdict.value}
        if self.error:
            d["error"] = self.error
        return d


def by_priority(sources: List[SourceDescriptor]) -> List[SourceDescriptor]:
    """Sort by priority rank; equal ranks keep registration order."""
    return sorted(sources, key=lambda s: s.priority)
