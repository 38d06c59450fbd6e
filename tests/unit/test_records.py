"""
Unit tests for the record model.
"""

import pytest

from reindex_audit.reconciliation.records import (
    ArchiveScope,
    DocumentKey,
    parse_record,
    render_value,
    text_size,
)


class TestDocumentKey:
    """Test document key equality rules."""

    def test_surrounding_whitespace_is_ignored(self):
        assert DocumentKey(" lib://ECCO/0001 ") == DocumentKey("lib://ECCO/0001")
        assert hash(DocumentKey("A\n")) == hash(DocumentKey("A"))

    def test_case_is_preserved(self):
        assert DocumentKey("a") != DocumentKey("A")

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            DocumentKey("   ")

    def test_non_string_rejected(self):
        with pytest.raises(ValueError, match="must be a string"):
            DocumentKey(42)

    def test_of_record(self):
        assert DocumentKey.of({"uri": ["A"], "title": ["T"]}) == DocumentKey("A")

    def test_of_record_without_key(self):
        with pytest.raises(KeyError, match="Key field 'uri' not found"):
            DocumentKey.of({"title": ["T"]})


class TestArchiveScope:
    """Test query scope descriptors."""

    def test_defaults(self):
        scope = ArchiveScope(target="resources", archive="ECCO")

        assert scope.fields == ("*",)
        assert scope.page_size == 500
        assert scope.sort == "uri asc"
        assert scope.includes_text is True

    def test_field_list_joined(self):
        scope = ArchiveScope(target="resources", archive="ECCO", fields=("uri", "title"))

        assert scope.field_list == "uri,title"
        assert scope.includes_text is False

    def test_offset(self):
        scope = ArchiveScope(target="resources", archive="ECCO", page_size=500)
        assert scope.offset(0) == 0
        assert scope.offset(3) == 1500

    def test_with_page_size_returns_new_scope(self):
        scope = ArchiveScope(target="resources", archive="ECCO")
        single = scope.with_page_size(1)

        assert single.page_size == 1
        assert scope.page_size == 500

    def test_invalid_page_size(self):
        with pytest.raises(ValueError, match="Page size must be positive"):
            ArchiveScope(target="resources", archive="ECCO", page_size=0)


class TestParseRecord:
    """Test conversion of raw service documents."""

    def test_scalars_become_single_element_lists(self):
        record = parse_record({"uri": "A", "title": "The Cat", "year": 1790})

        assert record == {"uri": ["A"], "title": ["The Cat"], "year": ["1790"]}

    def test_booleans_rendered_lowercase(self):
        record = parse_record({"uri": "A", "is_ocr": False, "freeculture": True})

        assert record["is_ocr"] == ["false"]
        assert record["freeculture"] == ["true"]

    def test_lists_preserve_order_and_drop_nulls(self):
        record = parse_record({"uri": "A", "genre": ["Poetry", None, "Drama"], "source": None})

        assert record["genre"] == ["Poetry", "Drama"]
        assert "source" not in record

    def test_single_value_and_one_element_list_compare_equal(self):
        assert parse_record({"uri": "A", "t": "x"}) == parse_record({"uri": "A", "t": ["x"]})

    def test_document_without_key(self):
        with pytest.raises(ValueError, match="uri"):
            parse_record({"title": "orphan"})

    def test_non_object_document(self):
        with pytest.raises(ValueError, match="must be an object"):
            parse_record(["uri", "A"])


class TestRendering:
    """Test value rendering helpers."""

    def test_render_joins_with_separator(self):
        assert render_value(["Poetry", "Drama"]) == "Poetry | Drama"

    def test_render_single_and_missing(self):
        assert render_value(["x"]) == "x"
        assert render_value(None) == ""

    def test_text_size(self):
        assert text_size({"uri": ["A"], "text": ["hello"]}) == 5
        assert text_size({"uri": ["A"]}) == 0
