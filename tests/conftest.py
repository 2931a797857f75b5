"""Shared fixtures: spreadsheet builders and a scriptable matching oracle."""
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest
from openpyxl import Workbook

from sheetmapper.schema.models import SourceField, TargetField


def write_xlsx(path: Path, sheets: Dict[str, List[List[Any]]]) -> Path:
    """Write a workbook with one worksheet per entry, rows[0] being the header."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        sheet = workbook.create_sheet(title)
        for row in rows:
            sheet.append(row)
    workbook.save(path)
    return path


class FakeMatcher:
    """
    Matching oracle double.

    Answers with ``answers[target name] = source name`` (confidence 90),
    records every call and can be gated on an asyncio.Event or made to fail.
    """

    def __init__(self, answers: Optional[Dict[str, str]] = None, fail: bool = False):
        self.answers = answers or {}
        self.fail = fail
        self.calls: List[List[str]] = []
        self.gate: Optional[asyncio.Event] = None

    async def match_fields(
        self,
        source_fields: Sequence[SourceField],
        target_fields: Sequence[TargetField],
    ) -> Dict[str, Any]:
        self.calls.append([t.id for t in target_fields])

        if self.gate is not None:
            await self.gate.wait()

        if self.fail:
            raise RuntimeError("oracle down")

        by_name = {s.name: s for s in source_fields}
        mappings = []
        for target in target_fields:
            source = by_name.get(self.answers.get(target.name, ""))
            mappings.append({
                "targetFieldId": target.id,
                "sourceFieldId": source.unique_id if source else None,
                "matchConfidence": 90 if source else 0,
            })
        return {"mappings": mappings}


@pytest.fixture
def invoice_xlsx(tmp_path):
    """Supplier workbook with the invoice columns used across tests."""
    return write_xlsx(
        tmp_path / "supplier_a.xlsx",
        {
            "发票": [
                ["发票号 (Invoice No)", "金额", "日期"],
                ["INV-001", 100, "2024-01-05"],
                ["INV-002", 250.5, "2024-01-06"],
            ],
        },
    )


@pytest.fixture
def invoice_csv(tmp_path):
    path = tmp_path / "supplier_b.csv"
    path.write_text(" Invoice No ,Amount\nB-1,10\nB-2,20\n", encoding="utf-8")
    return path


@pytest.fixture
def source_fields():
    """Flattened source view of two supplier files."""
    return [
        SourceField(unique_id="f1/field-1-1", name="发票号 (Invoice No)", sample_value="INV-001",
                    origin_file_id="f1", origin_file_name="a.xlsx", origin_sheet_name="发票"),
        SourceField(unique_id="f1/field-1-2", name="金额", sample_value="100",
                    origin_file_id="f1", origin_file_name="a.xlsx", origin_sheet_name="发票"),
        SourceField(unique_id="f2/field-1-1", name="Remarks", sample_value="ok",
                    origin_file_id="f2", origin_file_name="b.csv", origin_sheet_name="Sheet1"),
    ]


@pytest.fixture
def make_xlsx(tmp_path):
    """Builder: make_xlsx("name.xlsx", {"Sheet": rows}) -> path."""
    def _make(name: str, sheets: Dict[str, List[List[Any]]]) -> Path:
        return write_xlsx(tmp_path / name, sheets)
    return _make


@pytest.fixture
def matcher_factory():
    """Builder for FakeMatcher instances."""
    return FakeMatcher
