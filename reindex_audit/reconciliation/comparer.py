"""
Field Differ for Re-index Auditing

Field-by-field comparison of a matched baseline/candidate record pair.
Produces structured DiffEntry values; rendering is left to the reporter.
"""

import logging
from typing import Dict, FrozenSet, List, Mapping, Optional

from reindex_audit.reconciliation.ledger import (
    TEXT_PSEUDO_KEY,
    DiffEntry,
    DiffKind,
    Insertion,
)
from reindex_audit.reconciliation.normalizer import (
    EXCERPT_LEAD,
    TextNormalizer,
    excerpt_at,
    first_line_difference,
    hex_dump,
    index_of_difference,
)
from reindex_audit.reconciliation.records import render_value

logger = logging.getLogger(__name__)

TEXT_FIELD = "text"

# Operational metadata, never compared
EXCLUDED_FIELDS: FrozenSet[str] = frozenset({"batch", "score"})

# Fields legitimately added by newer indexing runs
ALLOWED_NEW_FIELDS: FrozenSet[str] = frozenset({
    "year_sort",
    "has_full_text",
    "freeculture",
    "is_ocr",
    "author_sort",
})

# Flags claiming a document carries full text
TEXT_FLAGS = ("has_full_text", "is_ocr")

INLINE_VALUE_LIMIT = 30
LEFTOVER_VALUE_LIMIT = 100
ENCODING_PLACEHOLDER = "** ERROR **"


def _one_line(value: str) -> str:
    return value.replace("\n", " / ")


class FieldDiffer:
    """
    Compares a matched pair of records.

    Handles:
    - Fields introduced in the candidate
    - Fields never reindexed (left over in the baseline)
    - Value mismatches surviving whitespace normalization
    - Text body drift, including appearance and disappearance
    """

    def __init__(
        self,
        normalizer: Optional[TextNormalizer] = None,
        allowed_new_fields: FrozenSet[str] = ALLOWED_NEW_FIELDS,
        excluded_fields: FrozenSet[str] = EXCLUDED_FIELDS
    ):
        """
        Initialize the field differ.

        Args:
            normalizer: Normalizer used for tolerant comparison
            allowed_new_fields: Fields that may appear without being flagged
            excluded_fields: Fields skipped on both sides
        """
        self.normalizer = normalizer or TextNormalizer()
        self.allowed_new_fields = allowed_new_fields
        self.excluded_fields = excluded_fields
        logger.debug("Initialized FieldDiffer")

    def compare_records(
        self,
        key: str,
        baseline: Mapping[str, List[str]],
        candidate: Mapping[str, List[str]],
        compare_text: bool = True
    ) -> List[DiffEntry]:
        """
        Compare every field of a matched pair.

        The baseline record is not modified; a working copy tracks which of
        its fields were matched by the candidate.

        Args:
            key: Document key of the pair
            baseline: Previously indexed record
            candidate: Freshly indexed record
            compare_text: Whether the text body takes part in the comparison

        Returns:
            Diagnostics in emission order
        """
        working: Dict[str, List[str]] = dict(baseline)
        entries: List[DiffEntry] = []

        for field, values in candidate.items():
            if field == TEXT_FIELD or field in self.excluded_fields:
                continue

            new_val = render_value(values)

            if field not in working:
                if field not in self.allowed_new_fields:
                    entries.append(DiffEntry(
                        key=key,
                        message=f"{field} {_one_line(new_val)} introduced in reindexing.",
                        kind=DiffKind.INTRODUCED,
                        field=field
                    ))
                continue

            old_val = render_value(working.pop(field))
            entries.extend(self.compare_values(key, field, old_val, new_val))

        if compare_text:
            entries.extend(self.compare_text(key, working, candidate))

        for field, values in working.items():
            if field in self.excluded_fields:
                continue
            if field == TEXT_FIELD and not compare_text:
                continue
            value = render_value(values)[:LEFTOVER_VALUE_LIMIT]
            entries.append(DiffEntry(
                key=key,
                message=f"Key not reindexed: {field}={value}",
                kind=DiffKind.NOT_REINDEXED,
                insertion=Insertion.APPEND,
                field=field
            ))

        if entries:
            logger.debug(f"{key}: {len(entries)} field diagnostics")

        return entries

    def compare_values(
        self,
        key: str,
        field: str,
        old_val: str,
        new_val: str
    ) -> List[DiffEntry]:
        """
        Compare one field's rendered values.

        Only a mismatch that survives whitespace normalization is reported.
        Long values are summarized with the first differing line.

        Args:
            key: Document key
            field: Field name
            old_val: Baseline rendering
            new_val: Candidate rendering

        Returns:
            Zero, one or two diagnostics
        """
        if new_val == old_val:
            return []

        if self.normalizer.normalize_field(new_val) == self.normalizer.normalize_field(old_val):
            return []

        if len(old_val) <= INLINE_VALUE_LIMIT:
            return [DiffEntry(
                key=key,
                message=(
                    f"{field} mismatched: \"{_one_line(new_val)}\" (new)"
                    f" vs. \"{_one_line(old_val)}\" (old)"
                ),
                kind=DiffKind.MISMATCH,
                field=field
            )]

        entries = [DiffEntry(
            key=key,
            message=(
                f"{field} mismatched: length= {len(new_val)} (new)"
                f" vs. {len(old_val)} (old)"
            ),
            kind=DiffKind.MISMATCH,
            field=field
        )]

        located = first_line_difference(new_val, old_val)
        if located is not None:
            line, new_line, old_line = located
            new_count = new_val.count("\n") + 1
            old_count = old_val.count("\n") + 1
            detail = f"        at line {line}:\n\"{new_line}\" vs.\n\"{old_line}\""
            if new_count != old_count:
                detail += f"\n        (truncated: {new_count} lines (new) vs. {old_count} lines (old))"
            entries.append(DiffEntry(
                key=key,
                message=detail,
                kind=DiffKind.MISMATCH,
                field=field
            ))

        return entries

    def compare_text(
        self,
        key: str,
        working: Dict[str, List[str]],
        candidate: Mapping[str, List[str]]
    ) -> List[DiffEntry]:
        """
        Compare the text bodies of a matched pair.

        Removes the baseline text from the working copy so it is not also
        reported as not reindexed.

        Args:
            key: Document key
            working: Working copy of the baseline record
            candidate: Candidate record

        Returns:
            Text diagnostics
        """
        entries: List[DiffEntry] = []

        new_txt = self._text_of(key, "new", candidate.get(TEXT_FIELD), entries)
        old_txt = self._text_of(key, "old", working.pop(TEXT_FIELD, None), entries)

        if new_txt is None:
            entries.extend(self.check_text_flags(key, candidate))

        if new_txt is None and old_txt is not None:
            entries.append(DiffEntry(
                key=key,
                message=f"text field has disappeared from the new index. (old text size = {len(old_txt)})",
                kind=DiffKind.TEXT_DISAPPEARED,
                insertion=Insertion.APPEND,
                field=TEXT_FIELD
            ))
        elif new_txt is not None and old_txt is None:
            entries.append(DiffEntry(
                key=key,
                message="text field has appeared in the new index.",
                kind=DiffKind.TEXT_APPEARED,
                insertion=Insertion.APPEND,
                field=TEXT_FIELD
            ))
        elif new_txt is not None and new_txt != old_txt:
            new_norm = self.normalizer.normalize_text(new_txt)
            old_norm = self.normalizer.normalize_text(old_txt)
            if new_norm != old_norm:
                entries.extend(self.describe_text_mismatch(key, old_norm, new_norm))

        return entries

    def check_text_flags(
        self,
        key: str,
        candidate: Mapping[str, List[str]]
    ) -> List[DiffEntry]:
        """Report text flags holding a literal "false" on a record without text."""
        entries = []
        for flag in TEXT_FLAGS:
            if flag not in candidate:
                continue
            val = render_value(candidate[flag])
            if val.lower() == "false":
                entries.append(DiffEntry(
                    key=key,
                    message=f"field {flag} is {val} but full text does not exist.",
                    kind=DiffKind.FLAG_INCONSISTENT,
                    insertion=Insertion.APPEND,
                    field=flag
                ))
        return entries

    def describe_text_mismatch(
        self,
        key: str,
        old_txt: str,
        new_txt: str
    ) -> List[DiffEntry]:
        """
        Build the diagnostic block for two differing normalized text bodies.

        The block is filed under the text pseudo-key, followed by an
        encoding anomaly entry if an excerpt cannot be byte-dumped.
        """
        position = max(0, index_of_difference(new_txt, old_txt))
        start = max(0, position - EXCERPT_LEAD)
        new_sub = excerpt_at(new_txt, position)
        old_sub = excerpt_at(old_txt, position)

        anomalies: List[DiffEntry] = []
        new_bytes = self._bytes_of(new_sub, anomalies)
        old_bytes = self._bytes_of(old_sub, anomalies)

        block = "\n".join([
            f"==== {key} mismatch at line 0 col {start}:",
            f"(new {len(new_txt)})",
            new_sub,
            "-- vs --",
            f"(old {len(old_txt)})",
            old_sub,
            f"NEW: {new_bytes}",
            f"OLD: {old_bytes}",
        ])

        return [DiffEntry(
            key=TEXT_PSEUDO_KEY,
            message=block,
            kind=DiffKind.TEXT_MISMATCH,
            insertion=Insertion.APPEND,
            field=TEXT_FIELD
        )] + anomalies

    def _bytes_of(self, excerpt: str, anomalies: List[DiffEntry]) -> str:
        try:
            return hex_dump(excerpt)
        except UnicodeEncodeError as e:
            logger.warning(f"Unable to encode text excerpt: {e}")
            anomalies.append(DiffEntry(
                key=TEXT_PSEUDO_KEY,
                message=f"Invalid bytes in text: {e}",
                kind=DiffKind.ENCODING_ANOMALY,
                insertion=Insertion.APPEND,
                field=TEXT_FIELD
            ))
            return ENCODING_PLACEHOLDER

    def _text_of(
        self,
        key: str,
        prefix: str,
        values: Optional[List[str]],
        entries: List[DiffEntry]
    ) -> Optional[str]:
        if not values:
            return None

        if len(values) > 1:
            entries.append(DiffEntry(
                key=key,
                message=f"{prefix} text is an array of size {len(values)}",
                kind=DiffKind.TEXT_MULTIVALUED,
                field=TEXT_FIELD
            ))
            return render_value(values)

        # A blank body counts as no text at all
        return values[0].strip() or None
