"""
Tests for validation functions.

Run with: pytest tests/test_validation.py -v
"""
import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.errors import ValidationError
from core.validation import (
    INITIAL_TAG,
    clean_name_list,
    coerce_cell,
    is_blank_row,
    validate_columns,
    validate_department,
    validate_row,
    validate_rows,
)


class TestCoerceCell:
    """Tests for cell coercion at the boundary."""

    def test_none_becomes_empty(self):
        assert coerce_cell(None, "A") == ""

    def test_numbers_and_bools(self):
        assert coerce_cell(42, "A") == "42"
        assert coerce_cell(1.5, "A") == "1.5"
        assert coerce_cell(True, "A") == "true"
        assert coerce_cell(False, "A") == "false"

    def test_text_unchanged(self):
        assert coerce_cell("  spaced ", "A") == "  spaced "

    def test_nested_rejected(self):
        with pytest.raises(ValidationError):
            coerce_cell({"x": 1}, "A")
        with pytest.raises(ValidationError):
            coerce_cell([1, 2], "A")


class TestValidateRow:
    """Tests for row validation."""

    def test_keeps_order_and_extra_keys(self):
        row = validate_row({"B": "2", "A": 1, "Legacy": None})
        assert list(row.items()) == [("B", "2"), ("A", "1"), ("Legacy", "")]

    def test_drops_tag_keys(self):
        row = validate_row({"A": "x", "__tag": "Ops", "__department": "Ops"})
        assert row == {"A": "x"}

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            validate_row(["A", "B"])

    def test_rows_must_be_a_list(self):
        assert validate_rows(None) == []
        with pytest.raises(ValidationError):
            validate_rows({"A": "1"})

    def test_blank_row(self):
        assert is_blank_row({"A": "", "B": "   ", "C": None})
        assert is_blank_row({})
        assert not is_blank_row({"A": "", "B": "0"})


class TestValidateColumns:
    """Tests for column list validation."""

    def test_valid_columns(self):
        assert validate_columns([" Asset ID ", "Location"]) == ["Asset ID", "Location"]

    def test_empty_list(self):
        assert validate_columns([]) == []

    def test_blank_name(self):
        with pytest.raises(ValidationError):
            validate_columns(["A", "  "])

    def test_duplicates_after_trim(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_columns(["A", "A "])
        assert "Duplicate" in exc_info.value.detail

    def test_reserved_name(self):
        with pytest.raises(ValidationError):
            validate_columns(["__tag"])

    def test_non_string(self):
        with pytest.raises(ValidationError):
            validate_columns(["A", 3])


class TestNames:
    """Tests for departments / emails normalization."""

    def test_dedupe_keeps_first(self):
        assert clean_name_list(["Ops", " Ops", "", None, "Finance", "Ops"]) == ["Ops", "Finance"]

    def test_department(self):
        assert validate_department("  Ops ") == "Ops"
        with pytest.raises(ValidationError):
            validate_department("")
        with pytest.raises(ValidationError):
            validate_department(INITIAL_TAG)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
