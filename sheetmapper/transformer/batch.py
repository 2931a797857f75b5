"""
Batch Transformer - turns source rows into normalized output rows

For every row of every included file (files in the given order, rows in
source order) one record is produced:
- a leading 1-based sequence number
- one value per target field, keyed by its display name, resolved as
  rule result > mapped source value > empty string
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sheetmapper.errors import MissingResource, ValidationError
from sheetmapper.mapper.mapping import FieldMapping
from sheetmapper.schema.models import TargetField
from sheetmapper.storage.file_store import FileStore
from sheetmapper.transformer.rule_engine import CopyPlan, FieldPlan, RuleEngine
from sheetmapper.transformer.sandbox import RowView
from sheetmapper.validator.mapping_validator import MappingValidator

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 10000
DEFAULT_SEQUENCE_COLUMN = "序号"
DEFAULT_PREVIEW_LIMIT = 100


@dataclass
class BatchResult:
    """All output rows of one run."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    skipped_files: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.rows)

    def preview(self, limit: int = DEFAULT_PREVIEW_LIMIT) -> List[Dict[str, Any]]:
        return self.rows[:limit]

    def to_response(self, limit: int = DEFAULT_PREVIEW_LIMIT) -> Dict[str, Any]:
        return {"success": True, "count": self.count, "data": self.preview(limit)}


class BatchTransformer:
    """
    Applies a frozen mapping set to the rows of loaded files

    Usage:
    ```python
    transformer = BatchTransformer(file_store)
    result = transformer.run([file.id], reconciler.snapshot(), registry.target_fields)
    print(result.count, result.preview(5))
    ```
    """

    def __init__(
        self,
        file_store: FileStore,
        rule_engine: Optional[RuleEngine] = None,
        max_rows: int = DEFAULT_MAX_ROWS,
        sequence_column: str = DEFAULT_SEQUENCE_COLUMN,
        validator: Optional[MappingValidator] = None,
    ):
        """
        Args:
            file_store: Where file ids are resolved
            rule_engine: Engine running processing rules
            max_rows: Safety ceiling on rows read per file
            sequence_column: Name of the leading sequence number column
            validator: Checks run before any row is produced
        """
        self.file_store = file_store
        self.rule_engine = rule_engine or RuleEngine()
        self.max_rows = max_rows
        self.sequence_column = sequence_column
        self.validator = validator or MappingValidator()

    def run(
        self,
        file_ids: Sequence[str],
        mappings: Sequence[FieldMapping],
        target_fields: Sequence[TargetField],
    ) -> BatchResult:
        """
        Transform all rows of the given files.

        Raises:
            ValidationError: Ambiguous target schema or mapping set
        """
        self.validator.require_valid(target_fields, mappings)

        snapshot = tuple(m.copy() for m in mappings)
        columns = self._plan_columns(snapshot, target_fields)
        result = BatchResult()

        for file_id in file_ids:
            named_rows = self._load_rows(file_id)
            if named_rows is None:
                result.skipped_files.append(file_id)
                continue

            for values in named_rows:
                sequence = result.count + 1
                row = RowView(values)
                record = {self.sequence_column: sequence}

                for key, plan in columns:
                    record[key] = self.rule_engine.evaluate(plan, row, context=f"row {sequence}, {key}")

                result.rows.append(record)

        logger.info(
            f"Processed {result.count} rows from {len(file_ids) - len(result.skipped_files)} file(s)"
        )
        return result

    def _plan_columns(
        self,
        mappings: Sequence[FieldMapping],
        target_fields: Sequence[TargetField],
    ) -> List[Tuple[str, FieldPlan]]:
        """Output columns in target field order, each with its value plan."""
        by_target = {m.target_field_id: m for m in mappings}
        columns = []

        for target in target_fields:
            mapping = by_target.pop(target.id, None)
            plan = self.rule_engine.prepare(mapping) if mapping else CopyPlan()
            columns.append((target.name or target.id, plan))

        # Mappings for unknown target fields are keyed by their id
        for target_id, mapping in by_target.items():
            columns.append((target_id, self.rule_engine.prepare(mapping)))

        return columns

    def _load_rows(self, file_id: str) -> Optional[List[Dict[str, Any]]]:
        """Rows of a file keyed by column label, None when unavailable."""
        try:
            preview = self.file_store.preview(file_id, sheet=None, limit=self.max_rows)
        except MissingResource as e:
            logger.warning(f"Skipping file {file_id}: {e}")
            return None

        loaded = self.file_store.get(file_id)
        logger.info(f"File {loaded.name if loaded else file_id} loaded {len(preview.data)} rows")
        return preview.named_rows()


def transform(
    request: Dict[str, Any],
    transformer: BatchTransformer,
    preview_limit: int = DEFAULT_PREVIEW_LIMIT,
) -> Dict[str, Any]:
    """
    Batch entry point for drivers.

    Args:
        request: {fileIds: [...], mappings: [...], targetFields: [...]}
        transformer: Configured BatchTransformer
        preview_limit: Number of rows returned in ``data``

    Returns:
        {success, count, data}

    Raises:
        ValidationError: Missing or malformed top-level fields
    """
    if not isinstance(request, dict):
        raise ValidationError("Request must be an object")

    file_ids = request.get("fileIds")
    raw_mappings = request.get("mappings")
    raw_targets = request.get("targetFields") or []

    if not isinstance(file_ids, list):
        raise ValidationError("fileIds must be a list")
    if not isinstance(raw_mappings, list):
        raise ValidationError("mappings must be a list")
    if not isinstance(raw_targets, list):
        raise ValidationError("targetFields must be a list")

    try:
        mappings = [FieldMapping.from_dict(m) for m in raw_mappings]
        targets = [TargetField.from_dict(t) for t in raw_targets]
    except (KeyError, TypeError, AttributeError) as e:
        raise ValidationError(f"Malformed mapping or target field: {e}") from e

    result = transformer.run([str(f) for f in file_ids], mappings, targets)
    return result.to_response(preview_limit)
