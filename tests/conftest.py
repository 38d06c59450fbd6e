"""
Pytest configuration and shared fixtures.

Provides an in-memory stand-in for the search-index service that answers
paginated select queries the way the real service does, plus helpers for
building documents and resetting package logging between tests.
"""

import logging
from typing import Any, Dict, List, Optional

import pytest


class FakeResponse:
    """Minimal requests.Response stand-in."""

    def __init__(self, status_code: int, payload: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeIndexService:
    """
    Session-compatible fake of a Solr-style select endpoint.

    Documents are stored per core and served sorted by uri, filtered by the
    archive named in the query and sliced by start/rows. Statuses queued in
    `failures` are returned before any successful response.
    """

    def __init__(self, failures: Optional[List[int]] = None):
        self.cores: Dict[str, List[Dict[str, Any]]] = {}
        self.failures = list(failures or [])
        self.headers: Dict[str, str] = {}
        self.auth = None
        self.requests: List[tuple] = []
        self.closed = False

    def add(self, core: str, documents: List[Dict[str, Any]]) -> None:
        docs = self.cores.setdefault(core, [])
        docs.extend(documents)
        docs.sort(key=lambda d: d["uri"])

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, dict(params or {})))

        if self.failures:
            return FakeResponse(self.failures.pop(0))

        core = url.rstrip("/").split("/")[-2]
        archive = params["q"].split(":", 1)[1].strip('"')
        docs = [d for d in self.cores.get(core, []) if d.get("archive") == archive]

        start, rows = int(params["start"]), int(params["rows"])
        page = docs[start:start + rows]

        if params["fl"] != "*":
            keep = set(params["fl"].split(","))
            page = [{k: v for k, v in d.items() if k in keep} for d in page]

        return FakeResponse(200, {"response": {"numFound": len(docs), "start": start, "docs": page}})

    def close(self):
        self.closed = True


def build_doc(uri: str, archive: str = "ECCO", **fields) -> Dict[str, Any]:
    """Raw service document with the required fields filled in."""
    doc = {
        "uri": uri,
        "archive": archive,
        "title": f"Title of {uri}",
        "title_sort": f"title of {uri}",
        "genre": ["Poetry"],
        "url": f"http://example.org/{uri}",
        "federation": ["NINES"],
        "year_sort": "1790",
        "freeculture": True,
        "is_ocr": False,
    }
    doc.update(fields)
    return doc


@pytest.fixture
def make_doc():
    """Factory for raw service documents."""
    return build_doc


@pytest.fixture
def index_service():
    """Empty fake index service."""
    return FakeIndexService()


@pytest.fixture
def no_sleep():
    """Sleep replacement recording requested delays."""
    delays: List[float] = []

    def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Undo logging configuration done by the CLI during a test."""
    package_logger = logging.getLogger("reindex_audit")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    propagate = package_logger.propagate

    yield

    for handler in list(package_logger.handlers):
        if handler not in handlers:
            package_logger.removeHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = propagate
