"""Validation of a mapping set before a batch run."""
from collections import Counter
from typing import List, Sequence

from sheetmapper.errors import ValidationError
from sheetmapper.mapper.mapping import FieldMapping
from sheetmapper.schema.models import TargetField


class MappingValidator:
    """Validates target fields and mappings."""

    def validate(
        self,
        target_fields: Sequence[TargetField],
        mappings: Sequence[FieldMapping],
    ) -> List[str]:
        """
        Collect problems that make output ambiguous or incomplete.

        Returns:
            List of human readable issues, empty when valid
        """
        errors = []

        names = Counter(t.name.strip() for t in target_fields if t.name.strip())
        for name, count in names.items():
            if count > 1:
                errors.append(f"Duplicate target field name: {name} ({count} fields)")

        seen = Counter(m.target_field_id for m in mappings)
        for target_id, count in seen.items():
            if count > 1:
                errors.append(f"More than one mapping for target field {target_id}")

        return errors

    def warnings(
        self,
        target_fields: Sequence[TargetField],
        mappings: Sequence[FieldMapping],
    ) -> List[str]:
        """Non-blocking issues: unmapped fields."""
        by_target = {m.target_field_id: m for m in mappings}
        issues = []

        for target in target_fields:
            mapping = by_target.get(target.id)
            if mapping is None or mapping.is_unmapped:
                issues.append(f"{target.name or target.id} is unmapped and will be blank")

        return issues

    def require_valid(
        self,
        target_fields: Sequence[TargetField],
        mappings: Sequence[FieldMapping],
    ) -> None:
        """
        Raises:
            ValidationError: With all problems joined
        """
        errors = self.validate(target_fields, mappings)
        if errors:
            raise ValidationError("; ".join(errors))
