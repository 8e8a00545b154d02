"""HTTP fetcher for status pages."""

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base_fetcher import BaseFetcher, FetchError

logger = logging.getLogger(__name__)

# Session-level retry for gateway transients
_retry = Retry(total=1, allowed_methods=["GET"], backoff_factor=0.5, status_forcelist=[502, 503, 504])
_session = requests.Session()
_session.mount("https://", HTTPAdapter(max_retries=_retry))
_session.mount("http://", HTTPAdapter(max_retries=_retry))

# Sent when a source does not configure its own headers
DEFAULT_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
}


class WebFetcher(BaseFetcher):
    """Fetcher for plain HTML status pages."""

    def _fetch_impl(self) -> str:
        headers = dict(DEFAULT_HEADERS)
        headers.update(self.source.headers)

        logger.debug(f"Fetching {self.name}: {self.source.url}")
        try:
            response = _session.get(
                self.source.url,
                timeout=self.source.timeout_seconds,
                headers=headers,
            )
            response.raise_for_status()
        except requests.Timeout as e:
            raise FetchError(self.name, f"timed out after {self.source.timeout_seconds}s", e) from e
        except requests.RequestException as e:
            raise FetchError(self.name, f"fetch failed for {self.source.url}: {e}", e) from e

        return response.text
