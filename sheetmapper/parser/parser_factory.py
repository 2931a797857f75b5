"""Factory for creating appropriate parser based on file type."""
from pathlib import Path

from sheetmapper.parser.base_parser import SpreadsheetParser
from sheetmapper.parser.csv_parser import CsvParser
from sheetmapper.parser.excel_parser import ExcelParser


class ParserFactory:
    """Factory for creating spreadsheet parsers."""

    # Map extensions to parser types
    PARSERS = {
        'xlsx': 'excel',
        'xlsm': 'excel',
        'csv': 'csv',
    }

    @staticmethod
    def create_parser(file_name: str) -> SpreadsheetParser:
        """
        Create parser based on file extension.

        Args:
            file_name: File name or path

        Returns:
            SpreadsheetParser: Appropriate parser instance

        Raises:
            ValueError: If file format is not supported
        """
        ext = Path(str(file_name)).suffix.lower().lstrip('.')

        parser_type = ParserFactory.PARSERS.get(ext)
        if parser_type == 'excel':
            return ExcelParser()
        elif parser_type == 'csv':
            return CsvParser()

        raise ValueError(f"Unsupported file format: {ext or file_name}")

    @staticmethod
    def supported_extensions() -> list:
        return sorted(f".{ext}" for ext in ParserFactory.PARSERS)
