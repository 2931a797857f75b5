"""Rule compilation, sandboxed evaluation and batch row transformation."""

from .batch import BatchResult, BatchTransformer, transform
from .registry import FunctionRegistry
from .rule_engine import ERROR_SENTINEL, CopyPlan, RuleEngine, RulePlan
from .sandbox import RowView, compile_rule

__all__ = [
    "BatchResult",
    "BatchTransformer",
    "CopyPlan",
    "ERROR_SENTINEL",
    "FunctionRegistry",
    "RowView",
    "RuleEngine",
    "RulePlan",
    "compile_rule",
    "transform",
]
