"""Abstract base class for spreadsheet parsers."""
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, List, Optional, Sequence

from openpyxl.utils import get_column_letter

from sheetmapper.errors import MissingResource
from sheetmapper.schema.models import ParsedField, ParsedFile, PreviewData, SheetInfo, SourceType

# Data rows inspected when inferring a column type
TYPE_SAMPLE_ROWS = 10

DATE_PATTERNS = [
    re.compile(r'^\d{1,2}/\d{1,2}/\d{2,4}$'),
    re.compile(r'^\d{4}-\d{2}-\d{2}'),
    re.compile(r'^\d{4}/\d{1,2}/\d{1,2}$'),
    re.compile(r'^\d{2}-\d{2}-\d{4}$'),
]


class SpreadsheetParser(ABC):
    """Abstract base class for spreadsheet parsers."""

    @abstractmethod
    def read_sheets(self, path: str, max_rows: Optional[int] = None) -> List[tuple]:
        """
        Read raw cell values.

        Args:
            path: Path to the file
            max_rows: Stop after this many data rows per sheet

        Returns:
            List of (sheet_name, rows) where rows[0] is the header row
        """
        pass

    def parse(self, path: str) -> ParsedFile:
        """
        Parse a file into sheets with field lists and row counts.

        Raises:
            MissingResource: If the file does not exist
        """
        self._require(path)
        parsed = ParsedFile()

        for sheet_idx, (sheet_name, rows) in enumerate(self.read_sheets(path), start=1):
            header = rows[0] if rows else []
            data_rows = rows[1:]
            samples = data_rows[:TYPE_SAMPLE_ROWS]

            fields = []
            for col_idx in range(len(header)):
                column = get_column_letter(col_idx + 1)
                values = [r[col_idx] for r in samples if col_idx < len(r) and not _blank(r[col_idx])]
                sample = data_rows[0][col_idx] if data_rows and col_idx < len(data_rows[0]) else None

                fields.append(
                    ParsedField(
                        id=f"field-{sheet_idx}-{col_idx + 1}",
                        name=self.header_label(header[col_idx], col_idx),
                        data_type=self.infer_type(values),
                        sample=format_cell(sample),
                        column=column,
                    )
                )

            parsed.sheets.append(SheetInfo(name=sheet_name, fields=fields, row_count=len(data_rows)))
            parsed.total_row_count += len(data_rows)

        return parsed

    def preview(self, path: str, sheet: Optional[str] = None, limit: int = 30) -> PreviewData:
        """
        Header plus the first ``limit`` data rows of a sheet.

        Args:
            path: Path to the file
            sheet: Sheet name, first sheet if None
            limit: Maximum number of data rows

        Raises:
            MissingResource: If the file or sheet does not exist
        """
        self._require(path)
        sheets = self.read_sheets(path, max_rows=limit)

        if sheet is None:
            selected = sheets[0] if sheets else None
        else:
            selected = next((s for s in sheets if s[0] == sheet), None)

        if selected is None:
            raise MissingResource(f"Sheet not found: {sheet or '(first sheet)'} in {path}")

        sheet_name, rows = selected
        header = rows[0] if rows else []
        headers = [
            {"key": f"col_{i + 1}", "label": self.header_label(h, i)}
            for i, h in enumerate(header)
        ]

        data = []
        for index, row in enumerate(rows[1:limit + 1], start=1):
            item = {"index": index}
            for i in range(len(header)):
                item[f"col_{i + 1}"] = format_cell(row[i] if i < len(row) else None)
            data.append(item)

        return PreviewData(headers=headers, data=data, sheet_name=sheet_name)

    @staticmethod
    def header_label(value: Any, col_idx: int) -> str:
        if _blank(value):
            return f"Column {get_column_letter(col_idx + 1)}"
        return format_cell(value)

    def infer_type(self, values: Sequence[Any]) -> SourceType:
        """
        Infer type from sample values.

        Args:
            values: Non-blank raw cell values

        Returns:
            SourceType: Inferred type
        """
        if not values:
            return SourceType.TEXT

        if any(isinstance(v, (date, datetime)) for v in values):
            return SourceType.DATE

        # Count type matches
        is_int_count = 0
        is_float_count = 0
        is_date_count = 0

        for raw in values:
            if isinstance(raw, bool):
                continue
            if isinstance(raw, int):
                is_int_count += 1
                continue
            if isinstance(raw, float):
                is_float_count += 1
                continue

            val = str(raw).strip()

            # Check if integer
            try:
                int(val)
                is_int_count += 1
                continue
            except ValueError:
                pass

            # Check if float
            try:
                float(val)
                is_float_count += 1
                continue
            except ValueError:
                pass

            if any(p.match(val) for p in DATE_PATTERNS):
                is_date_count += 1

        # Determine type by majority
        total = len(values)
        threshold = 0.8  # 80% of values must match type

        if is_int_count + is_float_count >= total * threshold:
            return SourceType.FLOAT if is_float_count else SourceType.INTEGER
        elif is_date_count >= total * threshold:
            return SourceType.DATE
        else:
            return SourceType.TEXT

    @staticmethod
    def _require(path: str) -> None:
        if not Path(path).is_file():
            raise MissingResource(f"File not found: {path}")


def format_cell(value: Any) -> str:
    """String form of a cell as shown to users and rules."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
