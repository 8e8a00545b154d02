"""
Status engine: cache check, fetch cycle, resolution.

Concurrent cache misses are coalesced: only one resolution cycle runs at a
time, and callers that waited on it receive its result instead of starting
their own cycle.
"""

import logging
import threading
from typing import Any, Dict, Optional

from ..config.settings import EngineConfig
from ..ingest.coordinator import FetchCoordinator, FetcherFactory
from ..ingest.fetch_web import WebFetcher
from .cache import ResultCache
from .models import ResolutionResult
from .policy import ResolutionPolicy, get_policy

logger = logging.getLogger(__name__)


class StatusEngine:
    """Answers "is the entity open, closed or delayed?" with caching."""

    def __init__(self, coordinator: FetchCoordinator, policy: ResolutionPolicy, cache: Optional[ResultCache] = None):
        self.coordinator = coordinator
        self.policy = policy
        self.cache = cache or ResultCache()
        self._cycle_lock = threading.Lock()
        self._cycles = 0
        self._last: Optional[ResolutionResult] = None

    @classmethod
    def from_config(cls, config: EngineConfig, fetcher_factory: FetcherFactory = WebFetcher) -> "StatusEngine":
        coordinator = FetchCoordinator(
            config.sources,
            config.entity,
            mode=config.dispatch_mode,
            no_mention=config.no_mention_verdict,
            retry_config=config.retry,
            fetcher_factory=fetcher_factory,
        )
        policy = get_policy(config.resolution_strategy, config.all_failed_status)
        return cls(coordinator, policy, ResultCache(config.cache_ttl_seconds))

    @property
    def cycle_count(self) -> int:
        return self._cycles

    def get_status(self, bypass_cache: bool = False) -> ResolutionResult:
        """
        Get the current resolved status.

        Args:
            bypass_cache: Skip the cache and force a fresh cycle (still
                coalesced with a cycle already in flight)

        Returns:
            ResolutionResult, with cached=True when served from the cache
        """
        if not bypass_cache:
            hit = self.cache.get()
            if hit is not None:
                return hit

        observed = self._cycles
        with self._cycle_lock:
            if self._cycles != observed and self._last is not None:
                # A cycle finished while we waited for the lock
                return self._last

            if not bypass_cache:
                hit = self.cache.get()
                if hit is not None:
                    return hit

            result = self.resolve_once()
            self.cache.put(result)
            self._last = result
            self._cycles += 1
            return result

    def resolve_once(self) -> ResolutionResult:
        """Run one fetch + classify + decide cycle, bypassing the cache."""
        verdicts = self.coordinator.fetch_all()
        result = self.policy.resolve(verdicts)

        if result.error:
            logger.warning(f"Resolved {result.status.value} ({result.error})")
        else:
            logger.info(f"Resolved {result.status.value} from {result.source}")
        return result

    def health_report(self) -> Dict[str, Any]:
        """Health summary, per-source detail and the age of the cached result."""
        report = self.coordinator.health_tracker.to_dict()
        report["cache_age_seconds"] = self.cache.age()
        return report
