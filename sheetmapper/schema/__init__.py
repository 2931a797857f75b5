"""
Schema Module

Target schema (user defined output columns) and source schema (columns
discovered in loaded files), tracked together by the SchemaRegistry.
"""

from .models import (
    LoadedFile,
    ParsedFile,
    PreviewData,
    SheetInfo,
    SourceField,
    SourceType,
    TargetField,
    TargetType,
)
from .registry import SchemaRegistry

__all__ = [
    "LoadedFile",
    "ParsedFile",
    "PreviewData",
    "SheetInfo",
    "SourceField",
    "SourceType",
    "TargetField",
    "TargetType",
    "SchemaRegistry",
]
