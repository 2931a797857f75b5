"""Exception hierarchy for the mapping pipeline."""


class SheetMapperError(Exception):
    """Base class for all sheet mapper errors."""


class OracleUnavailable(SheetMapperError):
    """Matching or rule-generation oracle failed, timed out or answered garbage."""


class CompileError(SheetMapperError):
    """A processing rule could not be compiled."""

    def __init__(self, message: str, lineno: int = None):
        super().__init__(message)
        self.lineno = lineno


class RuleRuntimeError(SheetMapperError):
    """A compiled rule raised while evaluating a row."""


class MissingResource(SheetMapperError):
    """A referenced file or sheet could not be found."""


class ValidationError(SheetMapperError):
    """Top-level request is malformed or empty."""
