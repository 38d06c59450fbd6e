"""
Text Normalizer for Re-index Auditing

Tolerant normalization applied before reporting a difference, so that
purely cosmetic re-rendering (whitespace, doubled punctuation artifacts)
does not surface as a regression. Also locates and excerpts differences.
"""

import logging
import re
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

# Punctuation artifacts doubled by earlier renderings of full text
TEXT_ARTIFACTS: List[Tuple[re.Pattern, str]] = [
    (re.compile("““"), "“"),
    (re.compile("””"), "”"),
    (re.compile("††"), "†"),
    (re.compile("—+"), "—"),
    (re.compile("–{2,}"), "–"),
]

_HORIZONTAL_SPACE = re.compile(r"[^\S\n]+")
_SPACE_BEFORE_NEWLINE = re.compile(r" \n")
_SPACE_AFTER_NEWLINE = re.compile(r"\n ")
_NEWLINES = re.compile(r"\n+")

EXCERPT_LEAD = 4
EXCERPT_LENGTH = 51
HEX_DUMP_LIMIT = 45


class TextNormalizer:
    """
    Normalizes field values and text bodies prior to comparison.

    Field values get whitespace normalization only; text bodies additionally
    have known punctuation artifacts collapsed.
    """

    def normalize_whitespace(self, value: str) -> str:
        """
        Collapse whitespace differences.

        Tabs become spaces, runs of spaces collapse, spaces around line
        breaks are dropped and line breaks (including blank lines) collapse
        into single spaces.

        Args:
            value: Raw value

        Returns:
            Normalized value
        """
        result = value.replace("\t", " ")
        result = _HORIZONTAL_SPACE.sub(" ", result)
        result = _SPACE_BEFORE_NEWLINE.sub("\n", result)
        result = _SPACE_AFTER_NEWLINE.sub("\n", result)
        result = _NEWLINES.sub(" ", result)
        return result.strip()

    def normalize_field(self, value: str) -> str:
        return self.normalize_whitespace(value)

    def normalize_text(self, value: str) -> str:
        """
        Normalize a full-text body.

        Args:
            value: Raw text

        Returns:
            Text with punctuation artifacts collapsed and whitespace normalized
        """
        result = value
        for pattern, replacement in TEXT_ARTIFACTS:
            result = pattern.sub(replacement, result)
        return self.normalize_whitespace(result)


def index_of_difference(first: str, second: str) -> int:
    """
    Find the first position at which two strings differ.

    Returns:
        Index of the first differing character, the shorter length when one
        is a prefix of the other, or -1 when the strings are equal
    """
    if first == second:
        return -1

    for i, (a, b) in enumerate(zip(first, second)):
        if a != b:
            return i

    return min(len(first), len(second))


def excerpt_at(value: str, position: int) -> str:
    """Window of text around a difference position."""
    start = max(0, position - EXCERPT_LEAD)
    return value[start:start + EXCERPT_LENGTH]


def first_line_difference(
    new_value: str,
    old_value: str
) -> Optional[Tuple[int, str, str]]:
    """
    Locate the first line at which two values differ.

    The scan is clamped to the shorter line list. When every shared line is
    equal but the line counts differ, the first line past the shorter value
    is reported with an empty string for the side that ran out.

    Args:
        new_value: Candidate value
        old_value: Baseline value

    Returns:
        (line index, new line, old line), or None if all lines match
    """
    new_lines = new_value.split("\n")
    old_lines = old_value.split("\n")

    shared = min(len(new_lines), len(old_lines))
    for i in range(shared):
        if new_lines[i] != old_lines[i]:
            return i, new_lines[i], old_lines[i]

    if len(new_lines) != len(old_lines):
        new_line = new_lines[shared] if shared < len(new_lines) else ""
        old_line = old_lines[shared] if shared < len(old_lines) else ""
        return shared, new_line, old_line

    return None


def hex_dump(value: str) -> str:
    """
    Hexadecimal dump of the UTF-8 bytes of a short excerpt.

    Raises:
        UnicodeEncodeError: If the excerpt holds characters that cannot be
            encoded (lone surrogates)
    """
    encoded = value.encode("utf-8")
    parts: List[str] = []
    length = 0
    for byte in encoded:
        part = f"{byte:02x} "
        parts.append(part)
        length += len(part)
        if length > HEX_DUMP_LIMIT:
            break
    return "".join(parts)
