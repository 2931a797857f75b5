"""Tests for spreadsheet parsers."""
from datetime import datetime

import pytest

from sheetmapper.errors import MissingResource
from sheetmapper.parser.base_parser import format_cell
from sheetmapper.parser.csv_parser import CsvParser
from sheetmapper.parser.excel_parser import ExcelParser
from sheetmapper.parser.parser_factory import ParserFactory
from sheetmapper.schema.models import SourceType


class TestExcelParser:
    """Test Excel parser."""

    def test_parse_fields_and_counts(self, invoice_xlsx):
        parsed = ExcelParser().parse(str(invoice_xlsx))

        assert parsed.total_row_count == 2
        sheet = parsed.sheets[0]
        assert sheet.name == "发票"
        assert sheet.row_count == 2
        assert [f.id for f in sheet.fields] == ["field-1-1", "field-1-2", "field-1-3"]
        assert [f.column for f in sheet.fields] == ["A", "B", "C"]
        assert sheet.fields[0].name == "发票号 (Invoice No)"
        assert sheet.fields[0].sample == "INV-001"
        assert sheet.fields[1].data_type == SourceType.FLOAT
        assert sheet.fields[2].data_type == SourceType.DATE

    def test_multiple_sheets_numbered(self, make_xlsx):
        path = make_xlsx("multi.xlsx", {
            "A": [["x"], [1]],
            "B": [["y", "z"], [1, 2], [3, 4]],
        })

        parsed = ExcelParser().parse(str(path))

        assert [s.name for s in parsed.sheets] == ["A", "B"]
        assert parsed.sheets[1].fields[1].id == "field-2-2"
        assert parsed.total_row_count == 3

    def test_type_inference(self, make_xlsx):
        path = make_xlsx("types.xlsx", {"S": [
            ["id", "when", "name"],
            [1, datetime(2024, 1, 5), "a"],
            [2, datetime(2024, 1, 6), "b"],
        ]})

        fields = ExcelParser().parse(str(path)).sheets[0].fields

        assert fields[0].data_type == SourceType.INTEGER
        assert fields[1].data_type == SourceType.DATE
        assert fields[1].sample == "2024-01-05"
        assert fields[2].data_type == SourceType.TEXT

    def test_blank_header_and_empty_rows(self, make_xlsx):
        path = make_xlsx("gaps.xlsx", {"S": [
            ["名称", None, "数量"],
            ["a", "x", 1],
            [None, None, None],
            ["b", "y", 2],
        ]})

        parsed = ExcelParser().parse(str(path))
        sheet = parsed.sheets[0]

        assert sheet.fields[1].name == "Column B"
        assert sheet.row_count == 2

    def test_preview(self, invoice_xlsx):
        preview = ExcelParser().preview(str(invoice_xlsx), limit=1)

        assert preview.sheet_name == "发票"
        assert preview.headers[0] == {"key": "col_1", "label": "发票号 (Invoice No)"}
        assert preview.data == [{"index": 1, "col_1": "INV-001", "col_2": "100", "col_3": "2024-01-05"}]
        assert preview.named_rows() == [{"发票号 (Invoice No)": "INV-001", "金额": "100", "日期": "2024-01-05"}]

    def test_preview_named_sheet(self, make_xlsx):
        path = make_xlsx("multi.xlsx", {"A": [["x"], [1]], "B": [["y"], [2]]})

        preview = ExcelParser().preview(str(path), sheet="B")

        assert preview.data[0]["col_1"] == "2"

    def test_preview_missing_sheet(self, invoice_xlsx):
        with pytest.raises(MissingResource):
            ExcelParser().preview(str(invoice_xlsx), sheet="nope")

    def test_missing_file(self, tmp_path):
        with pytest.raises(MissingResource):
            ExcelParser().parse(str(tmp_path / "missing.xlsx"))

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "broken.xlsx"
        path.write_text("not a workbook")

        with pytest.raises(MissingResource):
            ExcelParser().parse(str(path))


class TestCsvParser:
    """Test CSV parser."""

    def test_parse_simple(self, invoice_csv):
        parsed = CsvParser().parse(str(invoice_csv))

        sheet = parsed.sheets[0]
        assert sheet.name == "Sheet1"
        assert [f.name for f in sheet.fields] == [" Invoice No ", "Amount"]
        assert sheet.fields[1].data_type == SourceType.INTEGER
        assert sheet.row_count == 2

    def test_semicolon_delimiter(self, tmp_path):
        path = tmp_path / "semi.csv"
        path.write_text("product;price\nNotebook;2500.00\nMouse;50.00\n", encoding="utf-8")

        sheet = CsvParser().parse(str(path)).sheets[0]

        assert [f.name for f in sheet.fields] == ["product", "price"]
        assert sheet.fields[1].data_type == SourceType.FLOAT

    def test_gbk_encoded_file(self, tmp_path):
        path = tmp_path / "gbk.csv"
        path.write_bytes("发票号,金额\nA-1,10\n".encode("gbk"))

        sheet = CsvParser().parse(str(path)).sheets[0]

        assert sheet.fields[0].name == "发票号"

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "blank.csv"
        path.write_text("a,b\n1,2\n,\n3,4\n", encoding="utf-8")

        preview = CsvParser().preview(str(path))

        assert [row["col_1"] for row in preview.data] == ["1", "3"]


class TestParserFactory:
    """Test parser factory."""

    @pytest.mark.parametrize("name,parser_type", [
        ("a.xlsx", ExcelParser),
        ("A.XLSM", ExcelParser),
        ("b.csv", CsvParser),
    ])
    def test_create_parser(self, name, parser_type):
        assert isinstance(ParserFactory.create_parser(name), parser_type)

    @pytest.mark.parametrize("name", ["legacy.xls", "notes.txt", "noext"])
    def test_unsupported(self, name):
        with pytest.raises(ValueError):
            ParserFactory.create_parser(name)

    def test_supported_extensions(self):
        assert ParserFactory.supported_extensions() == [".csv", ".xlsm", ".xlsx"]


class TestFormatCell:
    """Cell formatting."""

    def test_format_cell(self):
        assert format_cell(None) == ""
        assert format_cell(True) == "true"
        assert format_cell(12.0) == "12"
        assert format_cell(12.5) == "12.5"
        assert format_cell(datetime(2024, 3, 1, 10, 30)) == "2024-03-01"
