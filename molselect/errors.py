"""Exception types raised by the selection engine.

Evaluation itself never raises for missing data: a predicate over a property
that has not been computed evaluates false. The errors below cover the
failures a caller has to report.
"""

from __future__ import annotations

from typing import Optional


class MolSelectError(Exception):
    """Base class for molselect errors."""


class QueryCompileError(MolSelectError, ValueError):
    """Malformed expression: unknown tag, wrong arity or mismatched value kinds."""


class QueryCancelledError(MolSelectError):
    """The caller cancelled a query before its synchronous phase started."""


class SelectionQueryError(MolSelectError):
    """A named query failed; the message carries the query label."""

    def __init__(self, label: str, message: str, cause: Optional[BaseException] = None):
        self.label = label
        self.cause = cause
        super().__init__(f"Query '{label}' failed: {message}")


class PrerequisiteError(SelectionQueryError):
    """Custom property computation required by a query failed."""
