"""
Reconciliation State for Re-index Auditing

Per-scan buffers for the streaming join. One instance is created when a
scan starts and discarded when it ends; nothing is shared across scans.
"""

import logging
from typing import Dict, FrozenSet, List, Optional, Set

from reindex_audit.reconciliation.records import DocumentKey, Record

logger = logging.getLogger(__name__)


class ReconciliationState:
    """
    Accumulating join state for one scan.

    Attributes:
        pending_baseline: Baseline records fetched but not yet matched
        backlog: Candidate records waiting for their baseline counterpart,
            in arrival order
        baseline_keys_seen: Every baseline key fetched during the scan
        candidate_keys_seen: Every candidate key fetched during the scan
        matched_keys: Keys whose pair has been compared
    """

    def __init__(self):
        self.pending_baseline: Dict[DocumentKey, Record] = {}
        self.backlog: Dict[DocumentKey, Record] = {}
        self.baseline_keys_seen: Set[DocumentKey] = set()
        self.candidate_keys_seen: Set[DocumentKey] = set()
        self.matched_keys: Set[DocumentKey] = set()
        self.closed = False

    def add_baseline(self, key: DocumentKey, record: Record) -> bool:
        """
        Buffer a baseline record.

        Returns:
            False if the key was already seen on the baseline side; the
            record is then dropped and a matched key is never re-inserted
        """
        self._check_open()

        if key in self.baseline_keys_seen:
            return False

        self.baseline_keys_seen.add(key)
        self.pending_baseline[key] = record
        return True

    def note_candidate(self, key: DocumentKey) -> bool:
        """
        Record that a candidate key was fetched.

        Returns:
            False if the key was already seen on the candidate side
        """
        self._check_open()

        if key in self.candidate_keys_seen:
            return False

        self.candidate_keys_seen.add(key)
        return True

    def take_baseline(self, key: DocumentKey) -> Optional[Record]:
        """Remove and return the pending baseline record for a key, if any."""
        self._check_open()

        record = self.pending_baseline.pop(key, None)
        if record is not None:
            self.matched_keys.add(key)
        return record

    def defer_candidate(self, key: DocumentKey, record: Record) -> None:
        self._check_open()
        self.backlog[key] = record

    def resolve_backlog(self, key: DocumentKey) -> Optional[Record]:
        self._check_open()
        return self.backlog.pop(key, None)

    def in_backlog(self, key: DocumentKey) -> bool:
        return key in self.backlog

    def backlog_keys(self) -> List[DocumentKey]:
        return list(self.backlog.keys())

    def snapshot_baseline_keys(self) -> FrozenSet[DocumentKey]:
        return frozenset(self.baseline_keys_seen)

    def snapshot_candidate_keys(self) -> FrozenSet[DocumentKey]:
        return frozenset(self.candidate_keys_seen)

    def close(self) -> None:
        """Release buffered records at the end of a scan."""
        logger.debug(
            f"Closing reconciliation state: {len(self.pending_baseline)} pending baseline, "
            f"{len(self.backlog)} backlog"
        )
        self.pending_baseline.clear()
        self.backlog.clear()
        self.closed = True

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError("Reconciliation state is closed")
