"""Registry of target fields and loaded source files."""
import itertools
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from sheetmapper.schema.models import (
    DEFAULT_ICON,
    LoadedFile,
    SourceField,
    TargetField,
    TargetType,
)

logger = logging.getLogger(__name__)

Listener = Callable[["SchemaRegistry"], None]


class SchemaRegistry:
    """
    Holds the current target schema and the set of loaded source files

    Target field ids are unique within the registry. Every change to the
    target field set is announced to the registered listeners (the mapping
    reconciler subscribes here to clean up and map new fields).
    """

    EDITABLE = ("name", "data_type", "description", "icon")

    def __init__(self):
        self._targets: List[TargetField] = []
        self._files: Dict[str, LoadedFile] = {}
        self._listeners: List[Listener] = []
        self._counter = itertools.count(1)

    # ------------------------------------------------------------------
    # Target fields
    # ------------------------------------------------------------------

    @property
    def target_fields(self) -> List[TargetField]:
        return list(self._targets)

    def target_ids(self) -> List[str]:
        return [t.id for t in self._targets]

    def get_target_field(self, target_id: str) -> Optional[TargetField]:
        for target in self._targets:
            if target.id == target_id:
                return target
        return None

    def add_target_field(self, **attrs) -> TargetField:
        """Append a blank Text field with a fresh timestamp-derived id."""
        target = TargetField(
            id=self._next_id(),
            name=attrs.get("name", ""),
            data_type=TargetType.parse(attrs.get("data_type", TargetType.TEXT)),
            description=attrs.get("description", ""),
            icon=attrs.get("icon", DEFAULT_ICON),
        )
        self._targets.append(target)
        self._notify()
        return target

    def remove_target_field(self, target_id: str) -> bool:
        before = len(self._targets)
        self._targets = [t for t in self._targets if t.id != target_id]
        removed = len(self._targets) != before
        if removed:
            self._notify()
        return removed

    def update_target_field(self, target_id: str, **patch) -> Optional[TargetField]:
        """Partial update of name/type/description/icon, no-op for unknown ids."""
        target = self.get_target_field(target_id)
        if target is None:
            return None

        for key, value in patch.items():
            if key not in self.EDITABLE:
                raise ValueError(f"Field attribute is not editable: {key}")
            if key == "data_type":
                value = TargetType.parse(value)
            setattr(target, key, value)

        self._notify()
        return target

    def import_from_template(self, fields: List[TargetField]) -> None:
        """Bulk-replace the target field list."""
        ids = [f.id for f in fields]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate target field ids in template")

        self._targets = list(fields)
        self._notify()

    def _next_id(self) -> str:
        return f"target-{int(time.time() * 1000)}-{next(self._counter)}"

    # ------------------------------------------------------------------
    # Source files
    # ------------------------------------------------------------------

    @property
    def files(self) -> List[LoadedFile]:
        return list(self._files.values())

    def add_file(self, loaded: LoadedFile) -> None:
        self._files[loaded.id] = loaded
        logger.info(f"Registered file {loaded.name} ({loaded.row_count} rows)")

    def remove_file(self, file_id: str) -> bool:
        return self._files.pop(file_id, None) is not None

    def get_file(self, file_id: str) -> Optional[LoadedFile]:
        return self._files.get(file_id)

    def source_fields_view(self) -> Tuple[SourceField, ...]:
        """Flatten the fields of every loaded file, recomputed on each call."""
        fields: List[SourceField] = []
        for loaded in self._files.values():
            fields.extend(loaded.source_fields())
        return tuple(fields)

    def find_source_field(self, unique_id: str) -> Optional[SourceField]:
        for source in self.source_fields_view():
            if source.unique_id == unique_id:
                return source
        return None

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
