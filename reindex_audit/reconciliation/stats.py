"""
Text Size Statistics for Re-index Auditing

Tracks text payload sizes of candidate records to help size index uploads:
totals, the largest single body and the worst burst over runs of N records.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Tuple

from reindex_audit.reconciliation.records import text_size

logger = logging.getLogger(__name__)

WINDOW_SIZES: Tuple[int, ...] = (2, 5, 10, 50, 100, 200, 500, 1000, 2000, 5000, 10000)


@dataclass
class StatWindow:
    """
    Running text size sum that resets every `size` records.

    The maximum sum is retained across the whole run. This is a
    reset-per-block sum, not a true sliding window.
    """

    size: int
    running: int = 0
    max_sum: int = 0

    def __post_init__(self):
        if self.size not in WINDOW_SIZES:
            raise ValueError(f"Unsupported window size {self.size}. Must be one of {list(WINDOW_SIZES)}")

    def observe(self, count: int, value: int) -> None:
        self.running += value
        if count % self.size == 0:
            self.max_sum = max(self.max_sum, self.running)
            self.running = 0

    def close(self) -> None:
        """Fold a trailing partial block into the maximum."""
        self.max_sum = max(self.max_sum, self.running)
        self.running = 0


@dataclass
class TextStats:
    """Snapshot of accumulated text statistics."""

    records: int = 0
    docs_with_text: int = 0
    total_text: int = 0
    max_text_size: int = 0
    window_max: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "records": self.records,
            "docs_with_text": self.docs_with_text,
            "total_text": self.total_text,
            "max_text_size": self.max_text_size,
            "window_max": {str(size): value for size, value in self.window_max.items()},
        }


class StatsAccumulator:
    """Observes every distinct candidate record, whatever its match outcome."""

    def __init__(self, window_sizes: Iterable[int] = WINDOW_SIZES):
        self.windows: List[StatWindow] = [StatWindow(size) for size in sorted(set(window_sizes))]
        self.count = 0
        self.docs_with_text = 0
        self.total_text = 0
        self.max_text_size = 0

    def observe(self, record: Mapping[str, List[str]]) -> int:
        """
        Account for one candidate record.

        Returns:
            The record's text size
        """
        size = text_size(record)
        self.observe_size(size, has_text="text" in record)
        return size

    def observe_size(self, size: int, has_text: bool = True) -> None:
        if has_text:
            self.docs_with_text += 1
            self.total_text += size
            self.max_text_size = max(self.max_text_size, size)

        self.count += 1
        for window in self.windows:
            window.observe(self.count, size)

    def finish(self) -> TextStats:
        """Close all windows and return the final statistics."""
        for window in self.windows:
            window.close()

        stats = self.snapshot()
        logger.debug(f"Text statistics: {stats}")
        return stats

    def snapshot(self) -> TextStats:
        return TextStats(
            records=self.count,
            docs_with_text=self.docs_with_text,
            total_text=self.total_text,
            max_text_size=self.max_text_size,
            window_max={window.size: window.max_sum for window in self.windows},
        )
