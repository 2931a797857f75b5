"""Tests for interactive source field selection."""
from unittest.mock import patch

import pytest

from sheetmapper.cli.field_selector import SourceFieldSelector


@pytest.fixture
def selector(source_fields):
    return SourceFieldSelector(source_fields)


class TestFilterFields:
    """Search and sheet filters."""

    def test_sheets_in_load_order(self, selector):
        assert selector.sheets() == ["发票", "Sheet1"]

    def test_search_by_field_or_file_name(self, selector):
        assert [f.name for f in selector.filter_fields("invoice")] == ["发票号 (Invoice No)"]
        assert [f.name for f in selector.filter_fields("B.CSV")] == ["Remarks"]

    def test_sheet_filter(self, selector):
        assert [f.name for f in selector.filter_fields(sheet="发票")] == ["发票号 (Invoice No)", "金额"]

    def test_no_filter(self, selector, source_fields):
        assert selector.filter_fields() == source_fields


class TestPromptSelection:
    """Numbered selection."""

    def test_pick_after_search(self, selector):
        with patch("click.prompt", side_effect=["/remarks", "1"]):
            chosen, field = selector.prompt_selection()

        assert chosen is True
        assert field.unique_id == "f2/field-1-1"

    def test_clear_source(self, selector):
        with patch("click.prompt", return_value="0"):
            assert selector.prompt_selection("f1/field-1-2") == (True, None)

    def test_cancel(self, selector):
        with patch("click.prompt", return_value=""):
            assert selector.prompt_selection() == (False, None)

    def test_invalid_input_reprompts(self, selector):
        with patch("click.prompt", side_effect=["abc", "9", "2"]):
            chosen, field = selector.prompt_selection()

        assert chosen is True
        assert field.name == "金额"

    def test_no_fields(self):
        assert SourceFieldSelector([]).prompt_selection() == (False, None)
