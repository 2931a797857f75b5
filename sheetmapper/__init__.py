"""
Sheet Mapper - normalize supplier spreadsheets into a target template

Pipeline:
- Schema registry: target fields and the source fields of loaded files
- Mapping reconciler: keeps one mapping per target field, oracle assisted
- Rule engine: sandboxed per-field processing rules
- Batch transformer: merges mapped/ruled values into output rows
"""

__version__ = "0.1.0"
