"""Error taxonomy for the SMOL runtime.

- ``StructuralError``: the program cannot be loaded (bad class table,
  free variables, unknown classes).  Raised before any step runs.
- ``EvaluationError``: a statement failed at runtime.  Attached to the
  step that produced it; the stack and heap are left as they were.
- ``LoweringError``: a query result could not be turned into a value.
- ``BridgeError`` and its subclasses: failures inside the semantic
  bridge (bad queries, unreachable ontology, reasoner crash).
"""

from __future__ import annotations


class SmolError(Exception):
    """Base class for all SMOL runtime errors."""


class StructuralError(SmolError):
    """The program or its static table is malformed."""

    def __init__(self, message: str, diagnostics: list[str] | None = None):
        self.diagnostics = list(diagnostics or [])
        if self.diagnostics:
            message = message + ":\n  " + "\n  ".join(self.diagnostics)
        super().__init__(message)


class EvaluationError(SmolError):
    """Runtime error while evaluating a statement."""

    def __init__(self, message: str, statement: object = None):
        super().__init__(message)
        self.message = message
        self.statement = statement

    def __str__(self) -> str:
        if self.statement is None:
            return self.message
        return f"{self.message} (in {self.statement!r})"


class LoweringError(EvaluationError):
    """A query result has a shape that cannot be lowered to a value."""


class BridgeError(SmolError):
    """Failure inside the semantic bridge."""


class QueryError(BridgeError):
    """A structured query or class expression is malformed."""


class ExternalServiceError(BridgeError):
    """The ontology loader or the reasoner failed."""
