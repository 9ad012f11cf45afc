"""Exception taxonomy shared by the analysis pipeline."""
from typing import Optional


class NgsageError(Exception):
    """Base class for all errors raised by ngsage."""


class MalformedSource(NgsageError):
    """A source unit could not be parsed."""

    def __init__(self, path: str, line: int = 1, column: int = 1, detail: str = "syntax error"):
        self.path = path
        self.line = line
        self.column = column
        self.detail = detail
        super().__init__(f"{path}:{line}:{column}: {detail}")


class SourceIOError(NgsageError):
    """A path was missing or unreadable."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class CatalogLoadError(NgsageError):
    """The rule catalog is invalid. Fatal at startup."""


class ConfigError(NgsageError):
    """The configuration could not be loaded or validated."""


class EngineFault(NgsageError):
    """A rule matcher raised while evaluating one unit."""

    def __init__(self, rule_id: str, path: str, cause: Optional[BaseException] = None):
        self.rule_id = rule_id
        self.path = path
        self.cause = cause
        reason = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown failure"
        super().__init__(f"rule '{rule_id}' failed on {path}: {reason}")


class AnalysisCancelled(NgsageError):
    """Raised at a cancellation checkpoint once the run has been cancelled."""
