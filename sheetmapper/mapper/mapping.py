"""Field mapping model."""
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


@dataclass
class FieldMapping:
    """Maps one target field to zero or one source field, plus an optional rule."""

    target_field_id: str
    source_field_id: Optional[str] = None
    source_field_name: Optional[str] = None
    source_file_name: Optional[str] = None
    match_confidence: int = 0
    processing_rule: Optional[str] = None  # human readable description
    generated_code: Optional[str] = None  # rule body run by the sandbox

    @property
    def is_unmapped(self) -> bool:
        return self.source_field_id is None and not self.generated_code

    @property
    def has_rule(self) -> bool:
        return bool(self.generated_code and self.generated_code.strip())

    def copy(self, **changes) -> "FieldMapping":
        """Return a copy with changes applied."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "targetFieldId": self.target_field_id,
            "sourceFieldId": self.source_field_id,
            "sourceFieldName": self.source_field_name,
            "sourceFileName": self.source_file_name,
            "matchConfidence": self.match_confidence,
            "processingRule": self.processing_rule,
            "generatedCode": self.generated_code,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldMapping":
        """
        Build from dictionary.

        Raises:
            KeyError: targetFieldId missing
            TypeError: A text field holds something other than a string
        """
        return cls(
            target_field_id=str(data["targetFieldId"]),
            source_field_id=_optional_text(data, "sourceFieldId"),
            source_field_name=_optional_text(data, "sourceFieldName"),
            source_file_name=_optional_text(data, "sourceFileName"),
            match_confidence=clamp_confidence(data.get("matchConfidence", 0)),
            processing_rule=_optional_text(data, "processingRule"),
            generated_code=_optional_text(data, "generatedCode"),
        )


def clamp_confidence(value: Any) -> int:
    """Coerce an oracle confidence score into an int within 0-100."""
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(100, score))


def _optional_text(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"{key} must be a string, got {type(value).__name__}")
    return value
