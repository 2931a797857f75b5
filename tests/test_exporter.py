"""Tests for the Excel exporter."""
from datetime import date

import pytest
from openpyxl import load_workbook

from sheetmapper.errors import ValidationError
from sheetmapper.exporter.excel_exporter import ExcelExporter


class TestExcelExporter:
    """Workbook output."""

    def test_export_rows(self, tmp_path):
        rows = [
            {"序号": 1, "发票号码": "INV-001", "总费用": 113.0},
            {"序号": 2, "发票号码": "INV-002", "总费用": None},
        ]

        path = ExcelExporter().export(rows, tmp_path / "out" / "result.xlsx")

        sheet = load_workbook(path).active
        assert sheet.title == "处理结果"
        assert [c.value for c in sheet[1]] == ["序号", "发票号码", "总费用"]
        assert [c.value for c in sheet[2]] == [1, "INV-001", 113]
        assert sheet.cell(row=3, column=3).value in (None, "")
        assert sheet.max_row == 3

    def test_header_style(self, tmp_path):
        path = ExcelExporter().export([{"a": 1, "b": 2}], tmp_path / "styled.xlsx")

        sheet = load_workbook(path).active
        header = sheet.cell(row=1, column=1)
        assert header.font.bold is True
        assert header.fill.fgColor.rgb.endswith("197FE6")
        assert sheet.column_dimensions["B"].width == 20

    def test_keys_of_later_rows_appended(self, tmp_path):
        rows = [{"a": 1}, {"a": 2, "b": date(2024, 1, 5)}]

        path = ExcelExporter().export(rows, tmp_path / "wide.xlsx", sheet_title="Result")

        sheet = load_workbook(path)["Result"]
        assert [c.value for c in sheet[1]] == ["a", "b"]
        assert sheet.cell(row=3, column=2).value == "2024-01-05"

    def test_nothing_to_export(self, tmp_path):
        with pytest.raises(ValidationError):
            ExcelExporter().export([], tmp_path / "empty.xlsx")

    def test_control_characters_removed(self, tmp_path):
        rows = [{"备注\x01": "paid\x00 in\x0b full", "金额": 5}]

        path = ExcelExporter().export(rows, tmp_path / "control.xlsx")

        sheet = load_workbook(path).active
        assert sheet.cell(row=1, column=1).value == "备注"
        assert sheet.cell(row=2, column=1).value == "paid in full"
        assert sheet.cell(row=2, column=2).value == 5
