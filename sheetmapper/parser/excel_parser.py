"""Excel file parser with multi-sheet support."""
import logging
from typing import List, Optional

from openpyxl import load_workbook

from sheetmapper.errors import MissingResource
from sheetmapper.parser.base_parser import SpreadsheetParser

logger = logging.getLogger(__name__)


class ExcelParser(SpreadsheetParser):
    """Parse .xlsx/.xlsm workbooks, one entry per worksheet."""

    def read_sheets(self, path: str, max_rows: Optional[int] = None) -> List[tuple]:
        """
        Read every worksheet of a workbook.

        Fully empty rows are skipped. The header is always row 1.

        Raises:
            MissingResource: If the workbook cannot be opened
        """
        try:
            wb = load_workbook(path, read_only=True, data_only=True)
        except Exception as e:
            raise MissingResource(f"Failed to open Excel file {path}: {e}") from e

        sheets = []
        try:
            for ws in wb.worksheets:
                rows = []
                for row in ws.iter_rows(values_only=True):
                    if not rows:
                        rows.append(self._trim_header(row))
                        continue
                    if all(v is None or (isinstance(v, str) and not v.strip()) for v in row):
                        continue
                    rows.append(list(row))
                    if max_rows is not None and len(rows) > max_rows:
                        break

                sheets.append((ws.title, rows))
        finally:
            wb.close()

        logger.debug(f"Read {len(sheets)} sheet(s) from {path}")
        return sheets

    @staticmethod
    def _trim_header(row) -> list:
        """Drop trailing empty header cells read-only mode reports."""
        header = list(row)
        while header and (header[-1] is None or str(header[-1]).strip() == ""):
            header.pop()
        return header
