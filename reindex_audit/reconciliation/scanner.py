"""
Archive Scanner for Re-index Auditing

Drives paginated retrieval of the candidate and baseline scopes, feeding
each page straight into the reconciler, and assembles the run report.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Optional

from reindex_audit.reconciliation.comparer import FieldDiffer
from reindex_audit.reconciliation.differ import Reconciler, SkipDetector, SkipReport
from reindex_audit.reconciliation.ledger import ErrorSink
from reindex_audit.reconciliation.records import ArchiveScope, DocumentKey
from reindex_audit.reconciliation.state import ReconciliationState
from reindex_audit.reconciliation.stats import WINDOW_SIZES, StatsAccumulator, TextStats
from reindex_audit.reconciliation.validator import RequiredFieldValidator
from reindex_audit.utils.run_context import get_run_id

logger = logging.getLogger(__name__)


def _sorted_keys(keys: Iterable[DocumentKey]) -> list:
    return sorted(str(key) for key in keys)


@dataclass
class ScanReport:
    """
    Outcome of one archive scan.

    matched, stale and pending_at_end partition the baseline key set;
    new is exactly the candidate keys absent from the baseline.
    """

    archive: str
    candidate_total: int
    baseline_total: int
    pages: int
    matched: FrozenSet[DocumentKey]
    stale: FrozenSet[DocumentKey]
    new: FrozenSet[DocumentKey]
    pending_at_end: FrozenSet[DocumentKey]
    unresolved_candidates: FrozenSet[DocumentKey]
    error_count: int
    text_error_count: int
    kind_counts: Dict[Any, int]
    text_stats: TextStats
    includes_text: bool
    duration_seconds: float
    run_id: Optional[str] = None
    skip_report: Optional[SkipReport] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "archive": self.archive,
            "run_id": self.run_id,
            "candidate_total": self.candidate_total,
            "baseline_total": self.baseline_total,
            "pages": self.pages,
            "matched_count": len(self.matched),
            "stale": _sorted_keys(self.stale),
            "new": _sorted_keys(self.new),
            "pending_at_end": _sorted_keys(self.pending_at_end),
            "error_count": self.error_count,
            "text_error_count": self.text_error_count,
            "diagnostics": {
                getattr(kind, "value", str(kind)): count
                for kind, count in self.kind_counts.items()
            },
            "text_stats": self.text_stats.to_dict(),
            "duration_seconds": round(self.duration_seconds, 3),
        }


class ArchiveScanner:
    """
    Streams baseline and candidate pages through the reconciler.

    Each iteration fetches one candidate page and then one baseline page for
    the same page index. The candidate scope governs termination; with
    drain_baseline the baseline scope is also read to exhaustion so that
    skip detection sees every baseline key.
    """

    def __init__(
        self,
        fetcher,
        reporter=None,
        metrics=None,
        window_sizes: Iterable[int] = WINDOW_SIZES,
        drain_baseline: bool = True,
        differ: Optional[FieldDiffer] = None,
        skip_detector: Optional[SkipDetector] = None
    ):
        """
        Initialize the scanner.

        Args:
            fetcher: Object with fetch(scope, page) returning a list of records
            reporter: Optional DiagnosticReporter flushed after every page
            metrics: Optional AuditMetrics
            window_sizes: Text burst windows to track
            drain_baseline: Read the baseline scope to exhaustion
            differ: Field differ for matched pairs
            skip_detector: Stale/new classifier
        """
        self.fetcher = fetcher
        self.reporter = reporter
        self.metrics = metrics
        self.window_sizes = tuple(window_sizes)
        self.drain_baseline = drain_baseline
        self.differ = differ or FieldDiffer()
        self.skip_detector = skip_detector or SkipDetector()

    def scan(
        self,
        baseline_scope: ArchiveScope,
        candidate_scope: ArchiveScope,
        validate_required: bool = False,
        compare_text: Optional[bool] = None
    ) -> ScanReport:
        """
        Compare one archive's candidate records against its baseline.

        Args:
            baseline_scope: Query for previously indexed records
            candidate_scope: Query for freshly indexed records
            validate_required: Check mandatory fields on matched candidates
            compare_text: Compare text bodies; defaults to whether the
                candidate field list includes text

        Returns:
            ScanReport for the run

        Raises:
            FetchFailure: If a page cannot be fetched; the scan is aborted
                and no skip report is produced
            ParseFailure: If a response body is malformed
        """
        archive = candidate_scope.archive
        if compare_text is None:
            compare_text = candidate_scope.includes_text

        started_at = datetime.now(timezone.utc)
        started = time.monotonic()
        logger.info(
            f"Starting comparison of archive {archive}: "
            f"{candidate_scope.target} vs {baseline_scope.target}, page size {candidate_scope.page_size}"
        )

        state = ReconciliationState()
        sink = ErrorSink()
        stats = StatsAccumulator(self.window_sizes)
        reconciler = Reconciler(
            state,
            sink,
            differ=self.differ,
            validator=RequiredFieldValidator() if validate_required else None,
            stats=stats,
            compare_text=compare_text
        )

        if self.reporter is not None:
            self.reporter.start(archive)

        try:
            pages = self._run_pages(reconciler, sink, baseline_scope, candidate_scope)

            if compare_text:
                added = reconciler.text_added_entries()
                if added:
                    sink.extend(added)
                    if self.reporter is not None:
                        self.reporter.text_added(sink)

            text_stats = stats.finish()
            skip = self.skip_detector.detect(
                state.snapshot_baseline_keys(),
                state.snapshot_candidate_keys()
            )

            report = ScanReport(
                archive=archive,
                candidate_total=len(state.candidate_keys_seen),
                baseline_total=len(state.baseline_keys_seen),
                pages=pages,
                matched=frozenset(state.matched_keys),
                stale=skip.stale,
                new=skip.new,
                pending_at_end=reconciler.pending_baseline_keys() - skip.stale,
                unresolved_candidates=frozenset(state.backlog.keys()),
                error_count=sink.error_count,
                text_error_count=sink.text_error_count,
                kind_counts=dict(sink.kind_counts),
                text_stats=text_stats,
                includes_text=compare_text,
                duration_seconds=time.monotonic() - started,
                run_id=get_run_id(),
                skip_report=skip
            )

        except Exception:
            logger.error(f"Comparison of archive {archive} aborted")
            if self.reporter is not None:
                self.reporter.flush(sink)
            if self.metrics is not None:
                self.metrics.record_scan(archive, "failure", time.monotonic() - started)
            raise

        finally:
            state.close()

        if self.reporter is not None:
            self.reporter.flush(sink)
            self.reporter.summary(report)
            self.reporter.skipped(archive, skip, started_at=started_at.isoformat())

        if self.metrics is not None:
            self.metrics.record_records(archive, "candidate", report.candidate_total)
            self.metrics.record_records(archive, "baseline", report.baseline_total)
            self.metrics.record_scan(
                archive,
                "success",
                report.duration_seconds,
                kind_counts=report.kind_counts,
                stale=len(report.stale),
                new=len(report.new),
                max_text_size=text_stats.max_text_size,
                window_max=text_stats.window_max
            )

        logger.info(
            f"Comparison of archive {archive} complete: {report.candidate_total} scanned, "
            f"{report.error_count} errors, {len(report.stale)} stale, {len(report.new)} new"
        )
        return report

    def _run_pages(
        self,
        reconciler: Reconciler,
        sink: ErrorSink,
        baseline_scope: ArchiveScope,
        candidate_scope: ArchiveScope
    ) -> int:
        page = 0
        candidate_done = False
        baseline_done = False

        while not candidate_done or (self.drain_baseline and not baseline_done):
            if not candidate_done:
                records = self.fetcher.fetch(candidate_scope, page)
                reconciler.add_candidate_page(records)
                if len(records) < candidate_scope.page_size:
                    candidate_done = True
                    logger.debug(f"Candidate scope exhausted at page {page}")

            if not baseline_done:
                records = self.fetcher.fetch(baseline_scope, page)
                reconciler.add_baseline_page(records)
                if len(records) < baseline_scope.page_size:
                    baseline_done = True
                    logger.debug(f"Baseline scope exhausted at page {page}")

            if self.reporter is not None:
                self.reporter.flush(sink)

            page += 1

        return page
