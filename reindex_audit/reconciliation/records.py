"""
Record Model for Re-index Auditing

Defines the shapes flowing through the comparison engine: the document key,
the field-map record parsed from the index service and the immutable scope
descriptor of one paginated query.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

KEY_FIELD = "uri"
VALUE_SEPARATOR = " | "
DEFAULT_SORT = f"{KEY_FIELD} asc"

Record = Dict[str, List[str]]


@dataclass(frozen=True)
class DocumentKey:
    """
    Identifier correlating baseline and candidate documents.

    Surrounding whitespace is stripped so that a stray space in one source
    cannot silently break the join. Case is preserved.
    """

    value: str

    def __post_init__(self):
        if not isinstance(self.value, str):
            raise ValueError(f"Document key must be a string, got {type(self.value).__name__}")

        stripped = self.value.strip()
        if not stripped:
            raise ValueError("Document key cannot be empty")

        object.__setattr__(self, "value", stripped)

    def __str__(self) -> str:
        return self.value

    @classmethod
    def of(cls, record: Mapping[str, List[str]]) -> "DocumentKey":
        """
        Extract the key of a parsed record.

        Raises:
            KeyError: If the record has no key field
            ValueError: If the key field is empty
        """
        values = record.get(KEY_FIELD)
        if not values:
            raise KeyError(
                f"Key field '{KEY_FIELD}' not found in record. "
                f"Available fields: {list(record.keys())}"
            )
        return cls(values[0])


@dataclass(frozen=True)
class ArchiveScope:
    """
    Immutable descriptor of one paginated query.

    Attributes:
        target: Logical source (core) to query
        archive: Archive filter value
        fields: Field list to return, ("*",) for all
        page_size: Records per page
        sort: Sort clause, always key ascending
    """

    target: str
    archive: str
    fields: Tuple[str, ...] = ("*",)
    page_size: int = 500
    sort: str = DEFAULT_SORT

    def __post_init__(self):
        if self.page_size < 1:
            raise ValueError(f"Page size must be positive, got {self.page_size}")
        if not self.fields:
            raise ValueError("Field list cannot be empty")

    @property
    def field_list(self) -> str:
        return ",".join(self.fields)

    @property
    def includes_text(self) -> bool:
        return "*" in self.fields or "text" in self.fields

    def with_page_size(self, page_size: int) -> "ArchiveScope":
        return replace(self, page_size=page_size)

    def offset(self, page: int) -> int:
        """Zero-based start offset of a page."""
        return page * self.page_size


def _render_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_record(document: Mapping[str, Any]) -> Record:
    """
    Convert a raw service document into a field map of string lists.

    Scalars become one-element lists so that a single-valued field and a
    one-element list compare identically. Null values are dropped.

    Args:
        document: Decoded JSON object from the service

    Returns:
        Parsed record

    Raises:
        ValueError: If the document is not an object or carries no key
    """
    if not isinstance(document, Mapping):
        raise ValueError(f"Document must be an object, got {type(document).__name__}")

    record: Record = {}
    for field, value in document.items():
        if value is None:
            continue
        if isinstance(value, list):
            record[field] = [_render_scalar(v) for v in value if v is not None]
        else:
            record[field] = [_render_scalar(value)]

    try:
        DocumentKey.of(record)
    except KeyError as e:
        raise ValueError(str(e)) from e

    return record


def render_value(values: Optional[Iterable[str]]) -> str:
    """Render a field's values as one comparable string."""
    if values is None:
        return ""
    return VALUE_SEPARATOR.join(values)


def text_size(record: Mapping[str, List[str]]) -> int:
    """Character length of the record's text body, 0 when it has none."""
    values = record.get("text")
    if not values:
        return 0
    return len(render_value(values))
