"""
Unit tests for run ID management.
"""

import logging

import pytest

from reindex_audit.utils.run_context import (
    ScanRunContext,
    clear_run_id,
    generate_run_id,
    get_run_id,
    run_id_filter,
    set_run_id,
    setup_run_logging,
)


@pytest.fixture(autouse=True)
def clean_run_id():
    clear_run_id()
    yield
    clear_run_id()


class TestRunId:
    """Test run ID helpers."""

    def test_generate_is_unique(self):
        assert generate_run_id() != generate_run_id()

    def test_set_and_get(self):
        set_run_id("run-1")

        assert get_run_id() == "run-1"

    def test_set_rejects_empty(self):
        with pytest.raises(ValueError, match="non-empty string"):
            set_run_id("")

    def test_unset_by_default(self):
        assert get_run_id() is None


class TestScanRunContext:
    """Test scoping of run IDs."""

    def test_generates_id(self):
        with ScanRunContext("ECCO") as run_id:
            assert run_id
            assert get_run_id() == run_id

        assert get_run_id() is None

    def test_explicit_id(self):
        with ScanRunContext("ECCO", run_id="run-7") as run_id:
            assert run_id == "run-7"

    def test_nested_restores_outer(self):
        with ScanRunContext("ECCO", run_id="outer"):
            with ScanRunContext("oldBailey", run_id="inner"):
                assert get_run_id() == "inner"
            assert get_run_id() == "outer"

    def test_restored_after_exception(self):
        with pytest.raises(RuntimeError):
            with ScanRunContext("ECCO", run_id="run-9"):
                raise RuntimeError("boom")

        assert get_run_id() is None


class TestRunIdFilter:
    """Test log record stamping."""

    def make_record(self):
        return logging.LogRecord("reindex_audit", logging.INFO, __file__, 1, "msg", None, None)

    def test_outside_run(self):
        record = self.make_record()

        assert run_id_filter(record) is True
        assert record.run_id == "N/A"

    def test_inside_run(self):
        record = self.make_record()

        with ScanRunContext("ECCO", run_id="run-3"):
            run_id_filter(record)

        assert record.run_id == "run-3"

    def test_setup_attaches_filter(self):
        handler = logging.NullHandler()

        setup_run_logging(handler)

        assert run_id_filter in handler.filters
