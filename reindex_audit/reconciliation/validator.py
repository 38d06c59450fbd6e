"""
Required Field Validator for Re-index Auditing

Checks that a freshly indexed record carries every mandatory field with
non-blank content.
"""

import logging
from typing import List, Mapping, Sequence

from reindex_audit.reconciliation.ledger import DiffEntry, DiffKind

logger = logging.getLogger(__name__)

REQUIRED_FIELDS: Sequence[str] = (
    "title_sort",
    "title",
    "genre",
    "archive",
    "url",
    "federation",
    "year_sort",
    "freeculture",
    "is_ocr",
)


class RequiredFieldValidator:
    """Validates mandatory-field completeness of candidate records."""

    def __init__(self, required_fields: Sequence[str] = REQUIRED_FIELDS):
        self.required_fields = tuple(required_fields)

    def validate(self, key: str, record: Mapping[str, List[str]]) -> List[DiffEntry]:
        """
        Validate all required fields of one record.

        A field is missing when absent and blank when the concatenation of
        its values is empty after trimming.

        Args:
            key: Document key
            record: Candidate record

        Returns:
            One diagnostic per missing or blank field
        """
        entries = []

        for field in self.required_fields:
            values = record.get(field)

            if values is None:
                entries.append(DiffEntry(
                    key=key,
                    message=f"required field: {field} missing in new index",
                    kind=DiffKind.REQUIRED_MISSING,
                    field=field
                ))
                continue

            if not "".join(values).strip():
                shape = "ARR" if len(values) > 1 else "STR"
                entries.append(DiffEntry(
                    key=key,
                    message=f"required {shape} field: {field} is all spaces in new index",
                    kind=DiffKind.REQUIRED_BLANK,
                    field=field
                ))

        if entries:
            logger.debug(f"{key}: {len(entries)} required field violations")

        return entries
