"""
Fetch coordinator with per-source timeouts and health tracking.

Runs one fetch per configured source with:
- Parallel or sequential-priority dispatch
- A deadline per source (retry budget + grace), enforced on the future
- Failure isolation: any fetch problem becomes an ERROR verdict
- Source health tracking
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from .base_fetcher import BaseFetcher
from .fetch_web import WebFetcher
from .health import HealthTracker
from .sources import Entity, SourceDescriptor, SourceVerdict, Verdict, by_priority

logger = logging.getLogger(__name__)

# Extra time allowed past a source's retry budget before its future is abandoned.
# The transport timeout bounds each socket operation, not the whole request.
FETCH_GRACE_SECONDS = 1.0


class DispatchMode(str, Enum):
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


FetcherFactory = Callable[..., BaseFetcher]


class FetchCoordinator:
    """Coordinates one fetch per source for a resolution cycle."""

    def __init__(
        self,
        sources: Sequence[SourceDescriptor],
        entity: Entity,
        mode: DispatchMode = DispatchMode.PARALLEL,
        no_mention: Verdict = Verdict.OPEN,
        retry_config: Optional[Dict[str, Any]] = None,
        fetcher_factory: FetcherFactory = WebFetcher,
        health_tracker: Optional[HealthTracker] = None,
        grace_seconds: float = FETCH_GRACE_SECONDS,
    ):
        self.sources = list(sources)
        self.mode = DispatchMode(mode)
        self.health_tracker = health_tracker or HealthTracker()
        self.grace_seconds = grace_seconds
        self.fetchers = {
            source.name: fetcher_factory(source, entity, no_mention=no_mention, retry_config=retry_config)
            for source in self.sources
        }

    def fetch_all(self) -> List[SourceVerdict]:
        """
        Fetch every source (or, in sequential mode, until one is decisive).

        Returns:
            SourceVerdicts in registration order. Sequential mode only lists
            the sources it consulted.
        """
        if not self.sources:
            return []

        logger.info(f"Starting {self.mode.value} fetch of {len(self.sources)} sources...")
        executor = ThreadPoolExecutor(max_workers=len(self.sources), thread_name_prefix="fetch")
        try:
            if self.mode is DispatchMode.SEQUENTIAL:
                results = self._fetch_sequential(executor)
            else:
                results = self._fetch_parallel(executor)
        finally:
            # Abandoned (timed out) fetches finish in the background
            executor.shutdown(wait=False)

        for result in results:
            self.health_tracker.record(result)
        return results

    def _fetch_parallel(self, executor: ThreadPoolExecutor) -> List[SourceVerdict]:
        started = time.monotonic()
        futures = [(source, executor.submit(self.fetchers[source.name].fetch)) for source in self.sources]

        results = []
        for source, future in futures:
            deadline = started + self._allowance(source)
            results.append(self._settle(source, future, max(0.0, deadline - time.monotonic())))
        return results

    def _fetch_sequential(self, executor: ThreadPoolExecutor) -> List[SourceVerdict]:
        consulted = {}
        for source in by_priority(self.sources):
            future = executor.submit(self.fetchers[source.name].fetch)
            result = self._settle(source, future, self._allowance(source))
            consulted[source.name] = result
            if result.verdict.is_decisive:
                break

        return [consulted[s.name] for s in self.sources if s.name in consulted]

    def _allowance(self, source: SourceDescriptor) -> float:
        """Seconds to wait for one source: its whole retry budget plus grace."""
        return self.fetchers[source.name].budget_seconds() + self.grace_seconds

    def _settle(self, source: SourceDescriptor, future: Future, wait_seconds: float) -> SourceVerdict:
        """Wait for one fetch, converting every failure into an ERROR verdict."""
        try:
            result = future.result(timeout=wait_seconds)
        except FutureTimeoutError:
            future.cancel()
            result = self._error(source, f"timed out after {source.timeout_seconds}s")
        except Exception as e:
            result = self._error(source, f"{type(e).__name__}: {e}")

        if result.verdict is Verdict.ERROR:
            logger.warning(f"Source \"{source.name}\" error: {result.error}")
        else:
            logger.info(f"Source \"{source.name}\" returned: {result.verdict.value}")
        return result

    @staticmethod
    def _error(source: SourceDescriptor, message: str) -> SourceVerdict:
        return SourceVerdict(name=source.name, verdict=Verdict.ERROR, error=message, priority=source.priority)
