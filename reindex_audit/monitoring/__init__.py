"""
Monitoring Module for Re-index Auditing

This module provides the observable outputs of a comparison run:
- Prometheus metrics for pages, retries, diagnostics and text sizes
- Human-readable diagnostics on the compare, compare_text and skipped channels

Usage:
    from reindex_audit.monitoring import AuditMetrics, DiagnosticReporter

    metrics = AuditMetrics()
    reporter = DiagnosticReporter()
    scanner = ArchiveScanner(fetcher, reporter=reporter, metrics=metrics)
"""

from reindex_audit.monitoring.metrics import AuditMetrics
from reindex_audit.monitoring.report import DiagnosticReporter

__all__ = [
    "AuditMetrics",
    "DiagnosticReporter",
]
