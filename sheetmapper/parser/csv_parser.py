"""CSV file parser with auto-delimiter detection."""
import csv
from io import StringIO
from pathlib import Path
from typing import List, Optional

from sheetmapper.parser.base_parser import SpreadsheetParser

# CSV files expose a single sheet
CSV_SHEET_NAME = "Sheet1"


class CsvParser(SpreadsheetParser):
    """Parse CSV files as a single-sheet workbook."""

    # Common delimiters
    DELIMITERS = [',', ';', '|', '\t']

    def read_sheets(self, path: str, max_rows: Optional[int] = None) -> List[tuple]:
        content = self._read_text(path)
        delimiter = self._detect_delimiter(content)
        rows = self._read_csv(content, delimiter)

        # Skip blank lines after the header
        rows = rows[:1] + [r for r in rows[1:] if any(c.strip() for c in r)]
        if max_rows is not None:
            rows = rows[:max_rows + 1]

        return [(CSV_SHEET_NAME, rows)]

    @staticmethod
    def _read_text(path: str) -> str:
        raw = Path(path).read_bytes()
        for encoding in ("utf-8-sig", "gb18030"):
            try:
                return raw.decode(encoding)
            except UnicodeDecodeError:
                continue
        return raw.decode("utf-8", errors="replace")

    def _detect_delimiter(self, content: str) -> str:
        """Delimiter occurring most often in the header line, comma if none."""
        header_line = content.splitlines()[0] if content else ""
        best = max(self.DELIMITERS, key=header_line.count)
        return best if header_line.count(best) else ","

    @staticmethod
    def _read_csv(content: str, delimiter: str) -> List[List[str]]:
        try:
            return list(csv.reader(StringIO(content), delimiter=delimiter))
        except csv.Error:
            return list(csv.reader(StringIO(content)))
