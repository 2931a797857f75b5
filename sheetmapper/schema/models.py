"""Models for target and source schemas."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any


class TargetType(str, Enum):
    """Data type of a target field."""

    TEXT = "Text"
    DATE = "Date"
    CURRENCY = "Currency"
    NUMBER = "Number"

    @classmethod
    def parse(cls, value: Any) -> "TargetType":
        """Lenient parse, unknown values become TEXT."""
        if isinstance(value, cls):
            return value
        aliases = {"string": cls.TEXT, "text": cls.TEXT, "date": cls.DATE,
                   "currency": cls.CURRENCY, "number": cls.NUMBER}
        return aliases.get(str(value or "").strip().lower(), cls.TEXT)


class SourceType(str, Enum):
    """Data type inferred for a source column."""

    TEXT = "Text"
    INTEGER = "Integer"
    DATE = "Date"
    FLOAT = "Float"


DEFAULT_ICON = "text_fields"


@dataclass
class TargetField:
    """Represents a column of the normalized output schema."""

    id: str
    name: str = ""
    data_type: TargetType = TargetType.TEXT
    description: str = ""
    icon: str = DEFAULT_ICON

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "dataType": self.data_type.value,
            "description": self.description,
            "icon": self.icon,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TargetField":
        """Build from dictionary, accepting the legacy ``type`` key."""
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            data_type=TargetType.parse(data.get("dataType", data.get("type"))),
            description=data.get("description") or "",
            icon=data.get("icon") or DEFAULT_ICON,
        )


@dataclass(frozen=True)
class SourceField:
    """Represents a column discovered in a loaded file."""

    unique_id: str
    name: str
    data_type: SourceType = SourceType.TEXT
    sample_value: str = ""
    origin_file_id: str = ""
    origin_file_name: str = ""
    origin_sheet_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary sent to the oracles."""
        return {
            "id": self.unique_id,
            "name": self.name,
            "type": self.data_type.value,
            "sample": self.sample_value,
            "fileName": self.origin_file_name,
            "sheetName": self.origin_sheet_name,
        }


@dataclass
class ParsedField:
    """A header cell of a parsed sheet."""

    id: str
    name: str
    data_type: SourceType
    sample: str
    column: str


@dataclass
class SheetInfo:
    """A parsed worksheet."""

    name: str
    fields: List[ParsedField] = field(default_factory=list)
    row_count: int = 0


@dataclass
class ParsedFile:
    """Result of parsing a spreadsheet file."""

    sheets: List[SheetInfo] = field(default_factory=list)
    total_row_count: int = 0

    def get_sheet(self, name: str) -> Optional[SheetInfo]:
        """Return sheet by name."""
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None


@dataclass
class LoadedFile:
    """A file known to the workspace, with its parsed structure."""

    id: str
    name: str
    path: str
    parsed: ParsedFile = field(default_factory=ParsedFile)

    @property
    def row_count(self) -> int:
        return self.parsed.total_row_count

    def source_fields(self) -> List[SourceField]:
        """Flatten sheets into source fields tagged with their origin."""
        fields = []
        for sheet in self.parsed.sheets:
            for parsed in sheet.fields:
                fields.append(
                    SourceField(
                        unique_id=f"{self.id}/{parsed.id}",
                        name=parsed.name,
                        data_type=parsed.data_type,
                        sample_value=parsed.sample,
                        origin_file_id=self.id,
                        origin_file_name=self.name,
                        origin_sheet_name=sheet.name,
                    )
                )
        return fields


@dataclass
class PreviewData:
    """Header plus row window of one sheet, keyed by column identifiers."""

    headers: List[Dict[str, str]] = field(default_factory=list)  # [{key, label}]
    data: List[Dict[str, Any]] = field(default_factory=list)  # [{index, col_N...}]
    sheet_name: str = ""

    def named_rows(self) -> List[Dict[str, Any]]:
        """Rows keyed by column label instead of column key."""
        rows = []
        for row in self.data:
            rows.append({h["label"]: row.get(h["key"], "") for h in self.headers})
        return rows
