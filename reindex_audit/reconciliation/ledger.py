"""
Diagnostic Ledger for Re-index Auditing

Structured diagnostics produced by the comparison components and the
ordered, per-key sink that accumulates them until they are rendered.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)

# Bucket for free-standing text diagnostics; not a document key
TEXT_PSEUDO_KEY = "txt"


class DiffKind(Enum):
    """Kinds of diagnostics the engine emits."""
    MISMATCH = "mismatch"
    INTRODUCED = "introduced"
    NOT_REINDEXED = "not_reindexed"
    REQUIRED_MISSING = "required_missing"
    REQUIRED_BLANK = "required_blank"
    FLAG_INCONSISTENT = "flag_inconsistent"
    TEXT_APPEARED = "text_appeared"
    TEXT_DISAPPEARED = "text_disappeared"
    TEXT_MULTIVALUED = "text_multivalued"
    TEXT_MISMATCH = "text_mismatch"
    TEXT_ADDED = "text_added"
    ENCODING_ANOMALY = "encoding_anomaly"
    DUPLICATE_KEY = "duplicate_key"


class Insertion(Enum):
    """Where an entry lands within its key's block."""
    PREPEND = "prepend"
    APPEND = "append"


TEXT_KINDS = frozenset({
    DiffKind.FLAG_INCONSISTENT,
    DiffKind.TEXT_APPEARED,
    DiffKind.TEXT_DISAPPEARED,
    DiffKind.TEXT_MISMATCH,
    DiffKind.TEXT_ADDED,
})


@dataclass(frozen=True)
class DiffEntry:
    """
    One diagnostic.

    Attributes:
        key: Document key, or TEXT_PSEUDO_KEY for free-standing text output
        message: Human-readable detail
        kind: Diagnostic kind
        insertion: Ordering discipline within the key's block
        field: Field the diagnostic concerns, if any
    """

    key: str
    message: str
    kind: DiffKind
    insertion: Insertion = Insertion.PREPEND
    field: str = ""

    @property
    def is_pseudo(self) -> bool:
        return self.key == TEXT_PSEUDO_KEY


class ErrorSink:
    """
    Ordered ledger of diagnostics, grouped per key.

    Keys keep first-seen order. Within a key, prepended entries go to the
    front (most specific first) and appended entries to the back. Entries
    under the pseudo-key are always appended. Text diagnostics count toward
    the text error total only; everything else outside the pseudo-key
    counts toward the error total.
    """

    def __init__(self):
        self._blocks: Dict[str, List[DiffEntry]] = {}
        self.error_count = 0
        self.text_error_count = 0
        self.kind_counts: Counter = Counter()

    def add(self, entry: DiffEntry) -> None:
        """Record a single diagnostic."""
        block = self._blocks.setdefault(entry.key, [])

        if entry.is_pseudo or entry.insertion is Insertion.APPEND:
            block.append(entry)
        else:
            block.insert(0, entry)

        self.kind_counts[entry.kind] += 1

        if entry.kind in TEXT_KINDS:
            self.text_error_count += 1
        elif not entry.is_pseudo:
            self.error_count += 1

    def extend(self, entries: List[DiffEntry]) -> None:
        for entry in entries:
            self.add(entry)

    def entries_for(self, key: str) -> List[DiffEntry]:
        return list(self._blocks.get(key, []))

    def blocks(self) -> List[Tuple[str, List[DiffEntry]]]:
        """Pending blocks in key insertion order."""
        return [(key, list(entries)) for key, entries in self._blocks.items()]

    def drain(self) -> List[Tuple[str, List[DiffEntry]]]:
        """
        Hand back all pending blocks and clear them.

        Counters are kept so totals survive periodic flushing.
        """
        blocks = self.blocks()
        self._blocks.clear()
        return blocks

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._blocks.values())
