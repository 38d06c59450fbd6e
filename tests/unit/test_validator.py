"""
Unit tests for required field validation.
"""

import pytest

from reindex_audit.reconciliation.ledger import DiffKind
from reindex_audit.reconciliation.validator import REQUIRED_FIELDS, RequiredFieldValidator


@pytest.fixture
def complete_record():
    return {field: ["value"] for field in REQUIRED_FIELDS}


class TestRequiredFieldValidator:
    """Test mandatory-field completeness checks."""

    def test_complete_record_passes(self, complete_record):
        assert RequiredFieldValidator().validate("A", complete_record) == []

    def test_missing_field(self, complete_record):
        del complete_record["genre"]

        entries = RequiredFieldValidator().validate("A", complete_record)

        assert len(entries) == 1
        assert entries[0].kind is DiffKind.REQUIRED_MISSING
        assert entries[0].message == "required field: genre missing in new index"

    def test_blank_string_field(self, complete_record):
        complete_record["title"] = ["   "]

        entries = RequiredFieldValidator().validate("A", complete_record)

        assert entries[0].kind is DiffKind.REQUIRED_BLANK
        assert entries[0].message == "required STR field: title is all spaces in new index"

    def test_blank_multivalued_field(self, complete_record):
        complete_record["federation"] = [" ", ""]

        entries = RequiredFieldValidator().validate("A", complete_record)

        assert entries[0].message == "required ARR field: federation is all spaces in new index"

    def test_multivalued_with_content_passes(self, complete_record):
        complete_record["genre"] = ["", "Poetry"]

        assert RequiredFieldValidator().validate("A", complete_record) == []

    def test_every_violation_reported(self):
        entries = RequiredFieldValidator().validate("A", {"uri": ["A"]})

        assert len(entries) == len(REQUIRED_FIELDS)
        assert {e.field for e in entries} == set(REQUIRED_FIELDS)

    def test_custom_field_list(self):
        validator = RequiredFieldValidator(required_fields=["title"])

        assert len(validator.validate("A", {"uri": ["A"]})) == 1
