"""
Prometheus Metrics for Re-index Auditing

Counters and gauges describing a comparison run: pages fetched, retries,
records scanned, diagnostics by kind, skip results and text payload sizes.
Each AuditMetrics owns its registry so runs and tests never collide.
"""

import logging
from typing import Dict, Mapping, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    push_to_gateway,
)

logger = logging.getLogger(__name__)


class AuditMetrics:
    """Prometheus metrics for archive comparison runs."""

    def __init__(
        self,
        namespace: str = "reindex_audit",
        registry: Optional[CollectorRegistry] = None
    ):
        """
        Initialize audit metrics.

        Args:
            namespace: Metric name prefix
            registry: Prometheus registry (a fresh one if not provided)
        """
        self.namespace = namespace
        self.registry = registry or CollectorRegistry()

        self.pages_fetched_total = Counter(
            f"{namespace}_pages_fetched_total",
            "Total pages fetched from the index service",
            ["target"],
            registry=self.registry
        )

        self.fetch_retries_total = Counter(
            f"{namespace}_fetch_retries_total",
            "Total page fetch retries",
            ["target"],
            registry=self.registry
        )

        self.page_fetch_duration_seconds = Histogram(
            f"{namespace}_page_fetch_duration_seconds",
            "Time to fetch one page, including retries",
            ["target"],
            buckets=(0.05, 0.1, 0.5, 1, 5, 10, 30, 60, 120, 300),
            registry=self.registry
        )

        self.records_scanned_total = Counter(
            f"{namespace}_records_scanned_total",
            "Total records scanned",
            ["archive", "side"],
            registry=self.registry
        )

        self.diagnostics_total = Counter(
            f"{namespace}_diagnostics_total",
            "Diagnostics recorded by kind",
            ["archive", "kind"],
            registry=self.registry
        )

        self.stale_documents = Gauge(
            f"{namespace}_stale_documents",
            "Documents in baseline but missing from candidate",
            ["archive"],
            registry=self.registry
        )

        self.new_documents = Gauge(
            f"{namespace}_new_documents",
            "Documents in candidate but missing from baseline",
            ["archive"],
            registry=self.registry
        )

        self.max_text_size = Gauge(
            f"{namespace}_max_text_size",
            "Largest single text body seen in the candidate",
            ["archive"],
            registry=self.registry
        )

        self.text_window_max = Gauge(
            f"{namespace}_text_window_max",
            "Largest text size sum over a run of N candidate records",
            ["archive", "window"],
            registry=self.registry
        )

        self.scan_duration_seconds = Histogram(
            f"{namespace}_scan_duration_seconds",
            "Duration of comparison runs in seconds",
            ["archive", "status"],
            buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800, 3600, 7200),
            registry=self.registry
        )

        logger.debug(f"AuditMetrics initialized with namespace: {namespace}")

    def record_page(self, target: str, duration_seconds: float) -> None:
        self.pages_fetched_total.labels(target=target).inc()
        self.page_fetch_duration_seconds.labels(target=target).observe(duration_seconds)

    def record_retry(self, target: str) -> None:
        self.fetch_retries_total.labels(target=target).inc()

    def record_records(self, archive: str, side: str, count: int) -> None:
        self.records_scanned_total.labels(archive=archive, side=side).inc(count)

    def record_scan(
        self,
        archive: str,
        status: str,
        duration_seconds: float,
        kind_counts: Optional[Mapping] = None,
        stale: int = 0,
        new: int = 0,
        max_text_size: int = 0,
        window_max: Optional[Mapping[int, int]] = None
    ) -> None:
        """
        Record the outcome of a comparison run.

        Args:
            archive: Archive name
            status: Run status (success/failure)
            duration_seconds: Duration in seconds
            kind_counts: Diagnostic counts keyed by DiffKind
            stale: Stale document count
            new: New document count
            max_text_size: Largest text body
            window_max: Burst maxima keyed by window size
        """
        self.scan_duration_seconds.labels(archive=archive, status=status).observe(duration_seconds)

        for kind, count in (kind_counts or {}).items():
            label = getattr(kind, "value", str(kind))
            self.diagnostics_total.labels(archive=archive, kind=label).inc(count)

        self.stale_documents.labels(archive=archive).set(stale)
        self.new_documents.labels(archive=archive).set(new)
        self.max_text_size.labels(archive=archive).set(max_text_size)

        for window, value in (window_max or {}).items():
            self.text_window_max.labels(archive=archive, window=str(window)).set(value)

        logger.debug(
            f"Recorded scan metrics for {archive}: status={status}, "
            f"duration={duration_seconds:.2f}s, stale={stale}, new={new}"
        )

    def get_sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Current value of a sample in this registry, None if absent."""
        return self.registry.get_sample_value(name, labels or {})

    def push(
        self,
        gateway_url: str,
        job_name: str = "reindex_audit",
        grouping_key: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Push metrics to a Prometheus Pushgateway.

        Raises:
            Exception: If the push fails
        """
        try:
            push_to_gateway(
                gateway_url,
                job=job_name,
                registry=self.registry,
                grouping_key=grouping_key or {}
            )
            logger.info(f"Pushed metrics to gateway: {gateway_url}")
        except Exception as e:
            logger.error(f"Failed to push metrics to gateway: {e}")
            raise
