"""Single-slot, time-limited cache for the last resolution."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .models import ResolutionResult

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0


@dataclass(frozen=True)
class CacheEntry:
    result: ResolutionResult
    stored_at: float


class ResultCache:
    """
    Holds the most recent ResolutionResult for ttl_seconds.

    A TTL of 0 disables caching. The clock is injectable so expiry can be
    tested without sleeping.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[CacheEntry] = None
        self._lock = threading.Lock()

    def get(self) -> Optional[ResolutionResult]:
        """Return the stored result marked as cached, or None on a miss."""
        with self._lock:
            entry = self._entry
        if entry is None:
            return None

        age = self._clock() - entry.stored_at
        if age >= self.ttl_seconds:
            return None

        logger.debug(f"Cache hit ({age:.1f}s old)")
        return entry.result.as_cached()

    def put(self, result: ResolutionResult):
        with self._lock:
            self._entry = CacheEntry(result=result, stored_at=self._clock())

    def age(self) -> Optional[float]:
        """Seconds since the slot was last written, or None if empty."""
        with self._lock:
            entry = self._entry
        return None if entry is None else self._clock() - entry.stored_at
