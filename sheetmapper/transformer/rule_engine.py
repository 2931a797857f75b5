"""Rule Engine - compiles and runs per-field processing rules."""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from sheetmapper.errors import CompileError, RuleRuntimeError
from sheetmapper.mapper.mapping import FieldMapping
from sheetmapper.transformer.registry import FunctionRegistry
from sheetmapper.transformer.sandbox import (
    CompiledRule,
    RowView,
    RuleInterpreter,
    compile_rule,
)

logger = logging.getLogger(__name__)

ERROR_SENTINEL = "[error: {message}]"


@dataclass(frozen=True)
class CopyPlan:
    """No usable rule: copy the mapped source value (or blank)."""

    kind = "copy"
    source_field_name: Optional[str] = None


@dataclass(frozen=True)
class RulePlan:
    """A compiled rule decides the value."""

    kind = "rule"
    rule: CompiledRule


FieldPlan = Union[CopyPlan, RulePlan]


class RuleEngine:
    """
    Compiles rule bodies once and invokes them row by row

    Compiled units are cached by their code text, so a rule is only
    recompiled when its text changes.
    """

    def __init__(self, functions: Optional[FunctionRegistry] = None):
        """
        Args:
            functions: Function registry exposed to rules
        """
        self.functions = functions or FunctionRegistry()
        self._cache: Dict[str, CompiledRule] = {}

    def compile(self, code: str) -> CompiledRule:
        """
        Compile a rule body.

        Raises:
            CompileError: Syntax error or unsupported construct
        """
        cached = self._cache.get(code)
        if cached is not None:
            return cached

        rule = compile_rule(code)
        self._cache[code] = rule
        return rule

    def prepare(self, mapping: FieldMapping) -> FieldPlan:
        """Decide once per run how a mapping produces its value."""
        if mapping.has_rule:
            try:
                return RulePlan(rule=self.compile(mapping.generated_code))
            except CompileError as e:
                logger.error(
                    f"Failed to compile rule for target field {mapping.target_field_id}: {e}"
                )

        return CopyPlan(source_field_name=mapping.source_field_name if mapping.source_field_id else None)

    def invoke(
        self, rule: CompiledRule, row_values: Mapping[str, Any], context: str = ""
    ) -> Any:
        """
        Run a rule against one row.

        None results become an empty string; runtime failures become an
        ``[error: ...]`` value so the rest of the batch is unaffected.
        """
        row = row_values if isinstance(row_values, RowView) else RowView(row_values)

        try:
            value = RuleInterpreter(row, self.functions).run(rule)
        except RuleRuntimeError as e:
            where = f" ({context})" if context else ""
            logger.error(f"Rule failed{where}: {e}")
            return ERROR_SENTINEL.format(message=e)

        return "" if value is None else value

    def evaluate(self, plan: FieldPlan, row: RowView, context: str = "") -> Any:
        """Value of one field for one row, following rule > source > blank."""
        if isinstance(plan, RulePlan):
            return self.invoke(plan.rule, row, context)

        if plan.source_field_name:
            value = row.lookup(plan.source_field_name)
            return "" if value is None else value

        return ""
