"""Abstract base class for status source fetchers with retry logic."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .extractor import extract
from .sources import Entity, SourceDescriptor, SourceVerdict, Verdict

logger = logging.getLogger(__name__)


# Default retry configuration (overridden by the retry: section of config/status.yaml)
DEFAULT_MAX_RETRIES = 1
DEFAULT_INITIAL_BACKOFF_SECONDS = 0.5
DEFAULT_BACKOFF_MULTIPLIER = 2


class FetchError(Exception):
    """Raised when a source cannot be reached (transport failure or timeout)."""
    def __init__(self, source_name: str, message: str, original_error: Optional[Exception] = None):
        self.source_name = source_name
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_name}: {message}")


class BaseFetcher(ABC):
    """Fetch one source's document and classify it for the tracked entity."""

    def __init__(
        self,
        source: SourceDescriptor,
        entity: Entity,
        no_mention: Verdict = Verdict.OPEN,
        retry_config: Optional[Dict[str, Any]] = None,
    ):
        self.source = source
        self.entity = entity
        self.no_mention = no_mention
        retry_config = retry_config or {}
        self.max_retries = max(1, int(retry_config.get('max_retries', DEFAULT_MAX_RETRIES)))
        self.initial_backoff = retry_config.get('initial_backoff_seconds', DEFAULT_INITIAL_BACKOFF_SECONDS)
        self.backoff_multiplier = retry_config.get('backoff_multiplier', DEFAULT_BACKOFF_MULTIPLIER)

    @property
    def name(self) -> str:
        return self.source.name

    def budget_seconds(self) -> float:
        """Worst-case duration of fetch(): every attempt timing out, plus the backoff sleeps."""
        backoffs = sum(self.initial_backoff * self.backoff_multiplier ** i for i in range(self.max_retries - 1))
        return self.max_retries * self.source.timeout_seconds + backoffs

    @abstractmethod
    def _fetch_impl(self) -> str:
        """
        Retrieve the raw document - to be overridden by subclasses.

        Returns:
            Document text (usually HTML)

        Raises:
            FetchError on transport failure
        """
        pass

    def fetch(self) -> SourceVerdict:
        """
        Fetch with retries, then classify.

        Returns:
            SourceVerdict - ERROR with the last error message if every
            attempt failed, otherwise the extracted verdict
        """
        last_error = None
        backoff = self.initial_backoff

        for attempt in range(1, self.max_retries + 1):
            try:
                document = self._fetch_impl()
                break
            except FetchError as e:
                last_error = e.message
                if attempt < self.max_retries:
                    logger.warning(f"Retry {attempt}/{self.max_retries} for {self.name} in {backoff}s: {e.message}")
                    time.sleep(backoff)
                    backoff *= self.backoff_multiplier
                else:
                    logger.error(f"Failed after {self.max_retries} attempts for {self.name}: {e.message}")
        else:
            return self.verdict(Verdict.ERROR, last_error)

        verdict = extract(document, self.source, self.entity.names, self.no_mention)
        return self.verdict(verdict)

    def verdict(self, verdict: Verdict, error: Optional[str] = None) -> SourceVerdict:
        return SourceVerdict(
            name=self.source.name,
            verdict=verdict,
            error=error,
            priority=self.source.priority,
        )
