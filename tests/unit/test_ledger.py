"""
Unit tests for the diagnostic ledger.
"""

import pytest

from reindex_audit.reconciliation.ledger import (
    TEXT_PSEUDO_KEY,
    DiffEntry,
    DiffKind,
    ErrorSink,
    Insertion,
)


class TestErrorSink:
    """Test ordering and counting of diagnostics."""

    @pytest.fixture
    def sink(self):
        return ErrorSink()

    def test_prepend_puts_latest_first(self, sink):
        sink.add(DiffEntry("A", "first", DiffKind.MISMATCH))
        sink.add(DiffEntry("A", "second", DiffKind.MISMATCH))

        assert [e.message for e in sink.entries_for("A")] == ["second", "first"]

    def test_append_goes_to_tail(self, sink):
        sink.add(DiffEntry("A", "leftover", DiffKind.NOT_REINDEXED, Insertion.APPEND))
        sink.add(DiffEntry("A", "mismatch", DiffKind.MISMATCH))
        sink.add(DiffEntry("A", "leftover 2", DiffKind.NOT_REINDEXED, Insertion.APPEND))

        assert [e.message for e in sink.entries_for("A")] == ["mismatch", "leftover", "leftover 2"]

    def test_blocks_keep_key_order(self, sink):
        sink.add(DiffEntry("B", "b", DiffKind.MISMATCH))
        sink.add(DiffEntry("A", "a", DiffKind.MISMATCH))
        sink.add(DiffEntry("B", "b2", DiffKind.MISMATCH))

        assert [key for key, _ in sink.blocks()] == ["B", "A"]

    def test_pseudo_key_not_counted_as_error(self, sink):
        sink.add(DiffEntry(TEXT_PSEUDO_KEY, "block", DiffKind.TEXT_MISMATCH))
        sink.add(DiffEntry("A", "mismatch", DiffKind.MISMATCH))

        assert sink.error_count == 1
        assert sink.text_error_count == 1
        assert len(sink) == 2

    def test_pseudo_key_always_appended(self, sink):
        sink.add(DiffEntry(TEXT_PSEUDO_KEY, "one", DiffKind.TEXT_MISMATCH))
        sink.add(DiffEntry(TEXT_PSEUDO_KEY, "two", DiffKind.TEXT_MISMATCH))

        assert [e.message for e in sink.entries_for(TEXT_PSEUDO_KEY)] == ["one", "two"]

    def test_text_kinds_on_documents_count_as_text_errors_only(self, sink):
        sink.add(DiffEntry("A", "flag", DiffKind.FLAG_INCONSISTENT, Insertion.APPEND))
        sink.add(DiffEntry("A", "gone", DiffKind.TEXT_DISAPPEARED, Insertion.APPEND))
        sink.add(DiffEntry("B", "new", DiffKind.TEXT_APPEARED, Insertion.APPEND))
        sink.add(DiffEntry("B", "mismatch", DiffKind.MISMATCH))

        assert sink.error_count == 1
        assert sink.text_error_count == 3
        assert [e.message for e in sink.entries_for("A")] == ["flag", "gone"]

    def test_kind_counts(self, sink):
        sink.extend([
            DiffEntry("A", "x", DiffKind.MISMATCH),
            DiffEntry("B", "y", DiffKind.MISMATCH),
            DiffEntry("B", "z", DiffKind.INTRODUCED),
        ])

        assert sink.kind_counts[DiffKind.MISMATCH] == 2
        assert sink.kind_counts[DiffKind.INTRODUCED] == 1

    def test_drain_clears_blocks_but_keeps_counters(self, sink):
        sink.add(DiffEntry("A", "x", DiffKind.MISMATCH))

        blocks = sink.drain()

        assert blocks[0][0] == "A"
        assert len(sink) == 0
        assert sink.blocks() == []
        assert sink.error_count == 1
