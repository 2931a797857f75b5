"""
Mapper Module

Keeps exactly one FieldMapping per live target field:
- MappingReconciler reacts to target schema changes
- HeuristicMatcher proposes source fields by name similarity
"""

from .heuristic import HeuristicMatcher
from .mapping import FieldMapping
from .reconciler import MappingReconciler, ReconcileResult

__all__ = [
    "FieldMapping",
    "HeuristicMatcher",
    "MappingReconciler",
    "ReconcileResult",
]
