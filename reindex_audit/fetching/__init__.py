"""HTTP retrieval of archive pages from the search-index service."""

from reindex_audit.fetching.page_fetcher import FetchFailure, PageFetcher, ParseFailure

__all__ = [
    "FetchFailure",
    "PageFetcher",
    "ParseFailure",
]
