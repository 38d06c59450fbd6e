"""
Streaming Reconciler for Re-index Auditing

Joins independently paginated baseline and candidate record streams by
document key, dispatches matched pairs for comparison and classifies the
documents that only one side ever returned.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from reindex_audit.reconciliation.comparer import FieldDiffer
from reindex_audit.reconciliation.ledger import (
    TEXT_PSEUDO_KEY,
    DiffEntry,
    DiffKind,
    ErrorSink,
    Insertion,
)
from reindex_audit.reconciliation.records import DocumentKey, Record, render_value
from reindex_audit.reconciliation.state import ReconciliationState
from reindex_audit.reconciliation.stats import StatsAccumulator
from reindex_audit.reconciliation.validator import RequiredFieldValidator

logger = logging.getLogger(__name__)

TEXT_PREVIEW_LENGTH = 200
RULE = "-" * 111


@dataclass(frozen=True)
class SkipReport:
    """
    Symmetric difference of the key sets seen during a scan.

    Attributes:
        stale: Keys present in the baseline but absent from the candidate
        new: Keys present in the candidate but absent from the baseline
    """

    stale: FrozenSet[DocumentKey]
    new: FrozenSet[DocumentKey]
    baseline_total: int
    candidate_total: int

    def sorted_stale(self) -> List[str]:
        return sorted(str(key) for key in self.stale)

    def sorted_new(self) -> List[str]:
        return sorted(str(key) for key in self.new)


class SkipDetector:
    """Classifies documents lost or added between baseline and candidate."""

    def detect(
        self,
        baseline_keys: FrozenSet[DocumentKey],
        candidate_keys: FrozenSet[DocumentKey]
    ) -> SkipReport:
        """
        Compute stale and new documents.

        Both differences are taken from the same immutable snapshots, so
        neither result depends on the order of evaluation.

        Args:
            baseline_keys: Every key seen on the baseline side
            candidate_keys: Every key seen on the candidate side

        Returns:
            SkipReport with both differences
        """
        baseline = frozenset(baseline_keys)
        candidate = frozenset(candidate_keys)

        stale = baseline - candidate
        new = candidate - baseline

        logger.info(f"Skip detection: {len(stale)} stale, {len(new)} new")

        return SkipReport(
            stale=stale,
            new=new,
            baseline_total=len(baseline),
            candidate_total=len(candidate)
        )


class Reconciler:
    """
    Streaming hash join between baseline and candidate pages.

    Baseline records wait in the pending map until a candidate with the
    same key arrives; candidates arriving before their baseline wait in the
    backlog and are retried whenever a new baseline page lands.
    """

    def __init__(
        self,
        state: ReconciliationState,
        sink: ErrorSink,
        differ: Optional[FieldDiffer] = None,
        validator: Optional[RequiredFieldValidator] = None,
        stats: Optional[StatsAccumulator] = None,
        compare_text: bool = True
    ):
        """
        Initialize the reconciler.

        Args:
            state: Join state owned by this scan
            sink: Diagnostic ledger
            differ: Field differ for matched pairs
            validator: Required field validator, None to skip validation
            stats: Text statistics observer for candidate records
            compare_text: Whether text bodies are compared
        """
        self.state = state
        self.sink = sink
        self.differ = differ or FieldDiffer()
        self.validator = validator
        self.stats = stats
        self.compare_text = compare_text

    def add_baseline_page(self, records: List[Record]) -> int:
        """
        Buffer a page of baseline records and retry the candidate backlog.

        Only keys arriving on this page can resolve a backlog entry; any
        earlier baseline key was matched when its candidate arrived.

        Args:
            records: Baseline page in service order

        Returns:
            Number of backlog candidates resolved by this page
        """
        arrived = []
        for record in records:
            key = DocumentKey.of(record)
            if self.state.add_baseline(key, record):
                arrived.append(key)
            else:
                self._report_duplicate(key, "baseline")

        resolved = 0
        for key in arrived:
            if not self.state.in_backlog(key):
                continue
            baseline = self.state.take_baseline(key)
            candidate = self.state.resolve_backlog(key)
            self._compare_pair(key, baseline, candidate)
            resolved += 1

        if resolved:
            logger.debug(f"Resolved {resolved} backlog candidates")

        return resolved

    def add_candidate_page(self, records: List[Record]) -> int:
        """
        Match a page of candidate records against the pending baseline.

        Args:
            records: Candidate page in service order

        Returns:
            Number of candidates matched immediately
        """
        matched = 0

        for record in records:
            key = DocumentKey.of(record)

            if not self.state.note_candidate(key):
                self._report_duplicate(key, "candidate")
                continue

            if self.stats is not None:
                self.stats.observe(record)

            baseline = self.state.take_baseline(key)
            if baseline is None:
                self.state.defer_candidate(key, record)
                continue

            self._compare_pair(key, baseline, record)
            matched += 1

        return matched

    def unresolved_candidates(self) -> List[Record]:
        """Candidates that never found a baseline counterpart, in arrival order."""
        return list(self.state.backlog.values())

    def text_added_entries(self) -> List[DiffEntry]:
        """
        Diagnostics for unresolved candidates that carry text.

        Filed under the text pseudo-key so they count as text errors only.
        """
        entries = []
        for key, record in self.state.backlog.items():
            text = render_value(record.get("text"))
            if not text.strip():
                continue
            entries.append(DiffEntry(
                key=TEXT_PSEUDO_KEY,
                message=f"{RULE}\n --- {key} --- ({len(text)} chars)\n{text[:TEXT_PREVIEW_LENGTH]}",
                kind=DiffKind.TEXT_ADDED,
                insertion=Insertion.APPEND,
                field="text"
            ))
        return entries

    def pending_baseline_keys(self) -> FrozenSet[DocumentKey]:
        return frozenset(self.state.pending_baseline.keys())

    def _compare_pair(self, key: DocumentKey, baseline: Record, candidate: Record) -> None:
        uri = str(key)

        if self.validator is not None:
            self.sink.extend(self.validator.validate(uri, candidate))

        self.sink.extend(self.differ.compare_records(
            uri,
            baseline,
            candidate,
            compare_text=self.compare_text
        ))

    def _report_duplicate(self, key: DocumentKey, side: str) -> None:
        logger.warning(f"Duplicate {side} key returned by service: {key}")
        self.sink.add(DiffEntry(
            key=str(key),
            message=f"duplicate key returned by {side} query; later copy ignored",
            kind=DiffKind.DUPLICATE_KEY,
            insertion=Insertion.APPEND
        ))
