"""
Unit tests for reconciliation differ module.

Tests the streaming join and stale/new document detection.
"""

from unittest.mock import patch

import pytest

from reindex_audit.reconciliation.differ import Reconciler, SkipDetector
from reindex_audit.reconciliation.ledger import TEXT_PSEUDO_KEY, DiffKind, ErrorSink
from reindex_audit.reconciliation.records import DocumentKey
from reindex_audit.reconciliation.state import ReconciliationState
from reindex_audit.reconciliation.stats import StatsAccumulator
from reindex_audit.reconciliation.validator import RequiredFieldValidator


def rec(uri, **fields):
    record = {"uri": [uri]}
    record.update({k: [v] for k, v in fields.items()})
    return record


def keys(*uris):
    return frozenset(DocumentKey(u) for u in uris)


class TestReconciler:
    """Test the page-by-page join."""

    @pytest.fixture
    def state(self):
        return ReconciliationState()

    @pytest.fixture
    def sink(self):
        return ErrorSink()

    @pytest.fixture
    def reconciler(self, state, sink):
        return Reconciler(state, sink)

    def test_candidate_matches_pending_baseline(self, reconciler, state):
        reconciler.add_baseline_page([rec("A"), rec("B")])

        matched = reconciler.add_candidate_page([rec("A")])

        assert matched == 1
        assert state.matched_keys == {DocumentKey("A")}
        assert reconciler.pending_baseline_keys() == keys("B")

    def test_candidate_before_baseline_resolved_later(self, reconciler, state):
        assert reconciler.add_candidate_page([rec("A"), rec("B")]) == 0
        assert state.backlog_keys() == [DocumentKey("A"), DocumentKey("B")]

        resolved = reconciler.add_baseline_page([rec("A")])

        assert resolved == 1
        assert state.backlog_keys() == [DocumentKey("B")]
        assert state.matched_keys == {DocumentKey("A")}

    def test_backlog_resolved_across_several_pages(self, reconciler, state):
        reconciler.add_candidate_page([rec("A"), rec("B"), rec("C")])
        reconciler.add_baseline_page([rec("A")])
        reconciler.add_baseline_page([rec("B"), rec("C")])

        assert state.backlog == {}
        assert state.matched_keys == keys("A", "B", "C")

    def test_matched_pair_is_diffed(self, reconciler, sink):
        reconciler.add_baseline_page([rec("A", title="Old")])
        reconciler.add_candidate_page([rec("A", title="New")])

        entries = sink.entries_for("A")
        assert len(entries) == 1
        assert entries[0].kind is DiffKind.MISMATCH

    def test_validator_runs_on_matched_candidates(self, state, sink):
        reconciler = Reconciler(state, sink, validator=RequiredFieldValidator(["title"]))

        reconciler.add_baseline_page([rec("A")])
        reconciler.add_candidate_page([rec("A")])

        assert sink.kind_counts[DiffKind.REQUIRED_MISSING] == 1

    def test_duplicate_keys_reported(self, reconciler, sink, state):
        reconciler.add_baseline_page([rec("A"), rec("A")])
        reconciler.add_candidate_page([rec("B"), rec("B")])

        assert sink.kind_counts[DiffKind.DUPLICATE_KEY] == 2
        assert state.backlog_keys() == [DocumentKey("B")]

    def test_stats_observe_every_candidate(self, state, sink):
        stats = StatsAccumulator([2])
        reconciler = Reconciler(state, sink, stats=stats)

        reconciler.add_candidate_page([rec("A", text="abc"), rec("B")])

        assert stats.count == 2
        assert stats.docs_with_text == 1
        assert stats.total_text == 3

    def test_duplicate_candidate_observed_once(self, state, sink):
        stats = StatsAccumulator([2])
        reconciler = Reconciler(state, sink, stats=stats)

        reconciler.add_candidate_page([rec("A", text="abc"), rec("A", text="abc")])
        reconciler.add_candidate_page([rec("A", text="abc")])

        assert stats.count == 1
        assert stats.total_text == 3
        assert stats.finish().window_max[2] == 3
        assert sink.kind_counts[DiffKind.DUPLICATE_KEY] == 2

    def test_backlog_lookups_bounded_by_page(self, reconciler, state):
        reconciler.add_candidate_page([rec(f"new{i:04d}") for i in range(500)])
        reconciler.add_candidate_page([rec("zzz")])

        with patch.object(state, "in_backlog", wraps=state.in_backlog) as lookups, \
                patch.object(state, "backlog_keys", side_effect=AssertionError("backlog walked")):
            for i in range(200):
                reconciler.add_baseline_page([rec(f"old{i:04d}")])
            resolved = reconciler.add_baseline_page([rec("zzz")])

        assert lookups.call_count == 201
        assert resolved == 1
        assert len(state.backlog) == 500
        assert DocumentKey("zzz") in state.matched_keys

    def test_duplicate_baseline_does_not_resolve_backlog(self, reconciler, state, sink):
        reconciler.add_baseline_page([rec("A")])
        reconciler.add_candidate_page([rec("A"), rec("B")])

        resolved = reconciler.add_baseline_page([rec("A")])

        assert resolved == 0
        assert state.backlog_keys() == [DocumentKey("B")]
        assert sink.kind_counts[DiffKind.DUPLICATE_KEY] == 1

    def test_text_added_entries_for_unresolved_candidates(self, reconciler):
        reconciler.add_candidate_page([rec("A", text="brand new body"), rec("B")])

        entries = reconciler.text_added_entries()

        assert len(entries) == 1
        assert entries[0].key == TEXT_PSEUDO_KEY
        assert entries[0].kind is DiffKind.TEXT_ADDED
        assert " --- A --- (14 chars)" in entries[0].message
        assert entries[0].message.endswith("brand new body")

    def test_unresolved_candidates(self, reconciler):
        reconciler.add_candidate_page([rec("A")])

        assert reconciler.unresolved_candidates() == [rec("A")]

    def test_keys_with_whitespace_still_join(self, reconciler, state):
        reconciler.add_baseline_page([rec("A ")])
        reconciler.add_candidate_page([rec(" A")])

        assert state.matched_keys == keys("A")


class TestSkipDetector:
    """Test stale/new classification."""

    def test_symmetric_difference(self):
        report = SkipDetector().detect(keys("A", "B"), keys("B", "C"))

        assert report.stale == keys("A")
        assert report.new == keys("C")
        assert report.baseline_total == 2
        assert report.candidate_total == 2

    def test_identical_sets(self):
        report = SkipDetector().detect(keys("A"), keys("A"))

        assert report.stale == frozenset()
        assert report.new == frozenset()

    def test_inputs_not_mutated(self):
        baseline = {DocumentKey("A"), DocumentKey("B")}
        candidate = {DocumentKey("B")}

        SkipDetector().detect(baseline, candidate)

        assert baseline == {DocumentKey("A"), DocumentKey("B")}
        assert candidate == {DocumentKey("B")}

    def test_sorted_output(self):
        report = SkipDetector().detect(keys("c", "a", "b"), keys())

        assert report.sorted_stale() == ["a", "b", "c"]
        assert report.sorted_new() == []
