"""
Page Fetcher for Re-index Auditing

Retrieves one page of records from the search-index service with a fixed
number of attempts. Non-success responses and transport errors are retried;
malformed payloads are not.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from reindex_audit.reconciliation.records import ArchiveScope, Record, parse_record

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_RETRY_INTERVAL = 30.0  # seconds
DEFAULT_TIMEOUT = 120.0  # seconds

# Solr-style JSON envelope: {"response": {"docs": [...]}}
RESULTS_ENVELOPE = ("response", "docs")


class FetchFailure(Exception):
    """Raised when a page cannot be retrieved within the allowed attempts."""

    def __init__(self, message: str, status: Optional[int] = None, attempts: int = 0):
        super().__init__(message)
        self.status = status
        self.attempts = attempts


class ParseFailure(Exception):
    """Raised when a response body cannot be parsed into records."""
    pass


class PageFetcher:
    """
    HTTP client for paginated archive queries.

    One call to fetch() issues a single logical query, retrying it up to
    max_attempts times with a fixed delay between attempts.
    """

    def __init__(
        self,
        base_url: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        auth: Optional[Tuple[str, str]] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        metrics=None
    ):
        """
        Initialize the page fetcher.

        Args:
            base_url: Service root, e.g. http://localhost:8983/solr
            max_attempts: Attempts per page before giving up
            retry_interval: Seconds to wait between attempts
            timeout: Per-request timeout in seconds
            auth: Optional (username, password) for basic auth
            session: Optional pre-configured requests session
            sleep: Sleep function used between attempts
            metrics: Optional AuditMetrics receiving fetch counters
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.retry_interval = retry_interval
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if auth:
            self.session.auth = auth
        self._sleep = sleep
        self.metrics = metrics

        logger.info(f"Initialized PageFetcher for {self.base_url}")

    def build_params(self, scope: ArchiveScope, page: int, page_size: int) -> Dict[str, Any]:
        """Query parameters for one page of a scope."""
        return {
            "q": f"archive:\"{scope.archive}\"",
            "start": page * page_size,
            "rows": page_size,
            "fl": scope.field_list,
            "sort": scope.sort,
            "wt": "json",
        }

    def fetch(
        self,
        scope: ArchiveScope,
        page: int,
        page_size: Optional[int] = None
    ) -> List[Record]:
        """
        Fetch one page of records.

        Args:
            scope: Query descriptor
            page: Zero-based page index
            page_size: Rows per page, defaults to the scope's page size

        Returns:
            Records in service order (key ascending)

        Raises:
            FetchFailure: If every attempt failed
            ParseFailure: If the response body is malformed
        """
        rows = page_size or scope.page_size
        url = f"{self.base_url}/{scope.target}/select"
        params = self.build_params(scope, page, rows)

        status: Optional[int] = None
        started = time.monotonic()

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
                status = response.status_code
            except requests.RequestException as e:
                response = None
                status = None
                logger.warning(
                    f"Request for {scope.target} page {page} failed: {e} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
            else:
                if status == 200:
                    if attempt > 1:
                        logger.info(f"Request for {scope.target} page {page} succeeded after {attempt} attempts")
                    records = self.parse(response)
                    self._record_page(scope, started)
                    logger.debug(f"Fetched {len(records)} records from {scope.target} page {page}")
                    return records

                logger.warning(
                    f"Request for {scope.target} page {page} returned {status} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )

            if attempt < self.max_attempts:
                if self.metrics is not None:
                    self.metrics.record_retry(scope.target)
                logger.info(f"Retrying in {self.retry_interval}s...")
                self._sleep(self.retry_interval)

        raise FetchFailure(
            f"Non-OK response for {scope.target} page {page} after "
            f"{self.max_attempts} attempts: {status}",
            status=status,
            attempts=self.max_attempts
        )

    def parse(self, response: requests.Response) -> List[Record]:
        """
        Parse a response body into records.

        Raises:
            ParseFailure: If the body is not JSON or lacks the results envelope
        """
        try:
            data = response.json()
        except ValueError as e:
            raise ParseFailure(f"Response body is not valid JSON: {e}") from e

        node: Any = data
        for name in RESULTS_ENVELOPE:
            if not isinstance(node, dict) or name not in node:
                raise ParseFailure(f"Response is missing '{name}' in results envelope")
            node = node[name]

        if not isinstance(node, list):
            raise ParseFailure(f"Results must be a list, got {type(node).__name__}")

        records = []
        for i, document in enumerate(node):
            try:
                records.append(parse_record(document))
            except ValueError as e:
                raise ParseFailure(f"Invalid document at index {i}: {e}") from e

        return records

    def close(self) -> None:
        self.session.close()

    def _record_page(self, scope: ArchiveScope, started: float) -> None:
        if self.metrics is not None:
            self.metrics.record_page(scope.target, time.monotonic() - started)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
