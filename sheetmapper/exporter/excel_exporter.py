"""Excel exporter."""
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from sheetmapper.errors import ValidationError

logger = logging.getLogger(__name__)

RESULT_SHEET_TITLE = "处理结果"
HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill("solid", fgColor="197FE6")
COLUMN_WIDTH = 20


class ExcelExporter:
    """Export processed rows to an xlsx workbook."""

    def export(
        self,
        rows: Sequence[Dict[str, Any]],
        output_file: Path,
        sheet_title: str = RESULT_SHEET_TITLE,
    ) -> Path:
        """
        Write rows to ``output_file``, one column per key of the first row.

        Raises:
            ValidationError: No rows to export
        """
        if not rows:
            raise ValidationError("Nothing to export")

        output_file = Path(output_file)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        headers = self._headers(rows)

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = sheet_title
        sheet.append([self._cell_value(header) for header in headers])

        for col_idx in range(1, len(headers) + 1):
            cell = sheet.cell(row=1, column=col_idx)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            sheet.column_dimensions[get_column_letter(col_idx)].width = COLUMN_WIDTH

        for row in rows:
            sheet.append([self._cell_value(row.get(header)) for header in headers])

        workbook.save(output_file)
        logger.info(f"Exported {len(rows)} rows to {output_file}")
        return output_file

    @staticmethod
    def _headers(rows: Sequence[Dict[str, Any]]) -> List[str]:
        """Keys of the first row, then any keys only later rows carry."""
        headers = list(rows[0].keys())
        for row in rows[1:]:
            headers.extend(key for key in row if key not in headers)
        return headers

    @staticmethod
    def _cell_value(value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float, bool)):
            return value
        # Control characters are rejected by openpyxl
        return ILLEGAL_CHARACTERS_RE.sub("", str(value))
