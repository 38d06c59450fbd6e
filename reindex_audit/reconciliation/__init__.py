"""
Reconciliation Module for Re-index Auditing

This module joins baseline and candidate record streams by document key
and describes every difference between matched documents.

Main components:
- records: Record model, document keys and query scopes
- normalizer: Whitespace and text artifact normalization
- comparer: Field-by-field and text comparison
- validator: Required field checks
- differ: Streaming join and skip detection
- stats: Text size statistics
- scanner: Paginated scan driver

Usage:
    from reindex_audit.reconciliation import ArchiveScanner, FieldDiffer

    # Compare two records
    differ = FieldDiffer()
    entries = differ.compare_records(uri, baseline_record, candidate_record)

    # Scan a whole archive
    scanner = ArchiveScanner(fetcher, reporter=DiagnosticReporter())
    report = scanner.scan(baseline_scope, candidate_scope)
"""

from reindex_audit.reconciliation.comparer import FieldDiffer
from reindex_audit.reconciliation.differ import Reconciler, SkipDetector, SkipReport
from reindex_audit.reconciliation.ledger import DiffEntry, DiffKind, ErrorSink
from reindex_audit.reconciliation.normalizer import TextNormalizer
from reindex_audit.reconciliation.records import ArchiveScope, DocumentKey
from reindex_audit.reconciliation.scanner import ArchiveScanner, ScanReport
from reindex_audit.reconciliation.stats import StatsAccumulator
from reindex_audit.reconciliation.validator import RequiredFieldValidator

__all__ = [
    "ArchiveScanner",
    "ArchiveScope",
    "DiffEntry",
    "DiffKind",
    "DocumentKey",
    "ErrorSink",
    "FieldDiffer",
    "Reconciler",
    "RequiredFieldValidator",
    "ScanReport",
    "SkipDetector",
    "SkipReport",
    "StatsAccumulator",
    "TextNormalizer",
]
