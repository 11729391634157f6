# ABOUTME: Unit tests for label string parsing
# ABOUTME: Tests parse_labels happy and sad paths and selector rendering

import pytest

from argocd_update_image.exceptions import LabelParseError
from argocd_update_image.utils.labels import format_selector, parse_labels


@pytest.mark.unit
class TestParseLabels:
    """Tests for parse_labels happy paths."""

    def test_whitespace_only_returns_empty(self):
        """Test a blank label string parses to an empty mapping."""
        assert parse_labels("    ") == {}

    def test_empty_string_returns_empty(self):
        assert parse_labels("") == {}

    def test_numbers(self):
        """Test numeric values are kept as strings."""
        assert parse_labels("a=1,b=2") == {"a": "1", "b": "2"}

    def test_trailing_comma_ignored(self):
        """Test a trailing comma does not produce an entry."""
        assert parse_labels("a=1,") == {"a": "1"}

    def test_mixed_values(self):
        assert parse_labels("a=1,b=dummy") == {"a": "1", "b": "dummy"}

    def test_surrounding_spaces_trimmed(self):
        """Test whitespace around keys, values and separators is trimmed."""
        assert parse_labels("a  =       1    ,   b =      dummy") == {"a": "1", "b": "dummy"}

    def test_first_equals_sign_separates(self):
        """Test everything after the first '=' belongs to the value."""
        assert parse_labels("expr=a=b") == {"expr": "a=b"}

    def test_blank_segments_between_entries(self):
        assert parse_labels("a=1, ,b=2") == {"a": "1", "b": "2"}


@pytest.mark.unit
class TestParseLabelsErrors:
    """Tests for parse_labels sad paths."""

    def test_entry_without_equals(self):
        """Test an entry without '=' has no value and fails."""
        with pytest.raises(LabelParseError):
            parse_labels("a, b=5")

    def test_entry_without_key(self):
        """Test an entry starting with '=' has no key and fails."""
        with pytest.raises(LabelParseError, match="key"):
            parse_labels("=a,b=3")

    def test_entry_with_empty_value(self):
        with pytest.raises(LabelParseError, match="value"):
            parse_labels("a=  ")


@pytest.mark.unit
class TestFormatSelector:
    """Tests for format_selector."""

    def test_single_label(self):
        assert format_selector({"team": "web"}) == "team=web"

    def test_multiple_labels_keep_order(self):
        assert format_selector({"a": "1", "b": "2"}) == "a=1,b=2"

    def test_roundtrip_with_parse(self):
        """Test a parsed label string renders back to the compact form."""
        assert format_selector(parse_labels(" a = 1 , b = 2 ,")) == "a=1,b=2"
