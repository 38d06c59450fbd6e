"""
Diagnostic Reporter for Re-index Auditing

Renders ledger blocks, text statistics and the stale/new report onto three
logging channels:
- reindex_audit.compare: per-document blocks and run summary
- reindex_audit.compare_text: text diagnostics and text size statistics
- reindex_audit.skipped: stale and new documents
"""

import logging
from typing import Optional

from reindex_audit.reconciliation.ledger import TEXT_PSEUDO_KEY, ErrorSink

COMPARE_LOGGER = "reindex_audit.compare"
TEXT_LOGGER = "reindex_audit.compare_text"
SKIPPED_LOGGER = "reindex_audit.skipped"

RULE = "-" * 111


class DiagnosticReporter:
    """Writes human-readable diagnostics for one comparison run."""

    def __init__(
        self,
        compare_log: Optional[logging.Logger] = None,
        text_log: Optional[logging.Logger] = None,
        skipped_log: Optional[logging.Logger] = None
    ):
        self.compare_log = compare_log or logging.getLogger(COMPARE_LOGGER)
        self.text_log = text_log or logging.getLogger(TEXT_LOGGER)
        self.skipped_log = skipped_log or logging.getLogger(SKIPPED_LOGGER)
        self.blocks_written = 0

    def start(self, archive: str) -> None:
        self.compare_log.info(f"====== Scanning archive \"{archive}\" ====== ")

    def flush(self, sink: ErrorSink) -> int:
        """
        Write and clear all pending ledger blocks.

        Document blocks get a key header with indented entries; entries under
        the text pseudo-key are written as-is to the text channel.

        Returns:
            Number of blocks written
        """
        written = 0
        for key, entries in sink.drain():
            if key == TEXT_PSEUDO_KEY:
                for entry in entries:
                    self.text_log.error(entry.message)
            else:
                self.compare_log.info(f"---{key}---")
                for entry in entries:
                    self.compare_log.info(f"    {entry.message}")
            written += 1

        self.blocks_written += written
        return written

    def text_added(self, sink: ErrorSink) -> int:
        """Write the block of candidates that carried text but had no baseline."""
        self.text_log.info(" ============================= TEXT ADDED TO ARCHIVE ===========================")
        written = self.flush(sink)
        self.text_log.info(RULE)
        return written

    def summary(self, report) -> None:
        """
        Write the end-of-run summary.

        Args:
            report: ScanReport of the finished run
        """
        stats = report.text_stats

        self.compare_log.info(
            f"Total Docs Scanned: {report.candidate_total}. Total Errors: {report.error_count}."
        )
        self.compare_log.info(f"  retrieved {report.candidate_total} new objects;")
        self.compare_log.info(f"  retrieved {report.baseline_total} old objects;")

        if report.includes_text:
            self.text_log.info(
                f"Total Docs Scanned: {report.candidate_total}. Total Errors: {report.text_error_count}."
            )
        self.text_log.info(f"Largest Text Size: {stats.max_text_size:,}.")
        self.text_log.info(f"Number of Docs with Text: {stats.docs_with_text:,}.")
        self.text_log.info(f"Total Text Size: {stats.total_text:,}.")
        windows = "\n".join(f"{size}={value:,}" for size, value in sorted(stats.window_max.items()))
        self.text_log.info(f"Running Text Sizes:\n{windows}")

        duration = report.duration_seconds
        if duration >= 60:
            self.compare_log.info(f"Finished in {duration / 60.0:3.2f} minutes.")
        else:
            self.compare_log.info(f"Finished in {duration:3.2f} seconds.")

    def skipped(self, archive: str, skip_report, started_at: str = "") -> None:
        """Write the stale/new document report."""
        if started_at:
            self.skipped_log.info(f"Started: {started_at}")
        self.skipped_log.info(f"====== Scanning archive \"{archive}\" ====== ")
        self.skipped_log.info(f"retrieved {skip_report.candidate_total} new objects;")
        self.skipped_log.info(f"retrieved {skip_report.baseline_total} old objects;")

        for uri in skip_report.sorted_stale():
            self.skipped_log.info(f"    Old: {uri}")
        for uri in skip_report.sorted_new():
            self.skipped_log.info(f"    New: {uri}")

        self.skipped_log.info(
            f"Total not indexed: {len(skip_report.stale)}. Total new: {len(skip_report.new)}."
        )
