"""Spreadsheet ingestion: parse files and read row windows."""

from .base_parser import SpreadsheetParser, format_cell
from .csv_parser import CsvParser
from .excel_parser import ExcelParser
from .parser_factory import ParserFactory

__all__ = [
    "SpreadsheetParser",
    "CsvParser",
    "ExcelParser",
    "ParserFactory",
    "format_cell",
]
