"""Template persistence in a JSON file."""
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sheetmapper.errors import ValidationError
from sheetmapper.mapper.mapping import FieldMapping
from sheetmapper.schema.models import TargetField

logger = logging.getLogger(__name__)


@dataclass
class Template:
    """A named target schema with its field mappings."""

    id: str
    name: str
    target_fields: List[TargetField] = field(default_factory=list)
    field_mappings: List[FieldMapping] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "targetFields": [t.to_dict() for t in self.target_fields],
            "fieldMappings": [m.to_dict() for m in self.field_mappings],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Template":
        """Build from dictionary."""
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            target_fields=[TargetField.from_dict(t) for t in data.get("targetFields") or []],
            field_mappings=[FieldMapping.from_dict(m) for m in data.get("fieldMappings") or []],
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


class TemplateStore:
    """CRUD over a JSON list of templates, one record per name."""

    def __init__(self, path: str):
        """
        Args:
            path: JSON file holding the template list
        """
        self.path = Path(path)

    def list(self) -> List[Template]:
        return [Template.from_dict(t) for t in self._read()]

    def get(self, template_id: str) -> Optional[Template]:
        for item in self._read():
            if item.get("id") == template_id:
                return Template.from_dict(item)
        return None

    def find_by_name(self, name: str) -> Optional[Template]:
        for item in self._read():
            if item.get("name") == name:
                return Template.from_dict(item)
        return None

    def save(
        self,
        name: str,
        target_fields: List[TargetField],
        field_mappings: List[FieldMapping],
    ) -> Template:
        """
        Create a template, or overwrite the one with the same name.

        The id and creation time of an overwritten template are kept.

        Raises:
            ValidationError: If name is empty
        """
        if not name or not name.strip():
            raise ValidationError("Template name must not be empty")

        templates = self._read()
        existing = next((i for i, t in enumerate(templates) if t.get("name") == name), None)
        now = datetime.now().isoformat()

        template = Template(
            id=templates[existing]["id"] if existing is not None else f"template-{int(time.time() * 1000)}",
            name=name,
            target_fields=list(target_fields),
            field_mappings=list(field_mappings),
            created_at=templates[existing].get("createdAt", now) if existing is not None else now,
            updated_at=now,
        )

        if existing is not None:
            templates[existing] = template.to_dict()
            logger.info(f"Updated template: {name}")
        else:
            templates.append(template.to_dict())
            logger.info(f"Created template: {name}")

        self._write(templates)
        return template

    def delete(self, template_id: str) -> bool:
        templates = self._read()
        remaining = [t for t in templates if t.get("id") != template_id]
        if len(remaining) == len(templates):
            return False

        self._write(remaining)
        return True

    def _read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read templates from {self.path}: {e}")
            return []

        return data if isinstance(data, list) else []

    def _write(self, templates: List[Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(templates, f, indent=2, ensure_ascii=False)
