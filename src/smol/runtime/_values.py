"""Value system for the interpreter.

Runtime values are plain Python values (``int``, ``float``, ``str``,
``bool``), ``None`` for the null reference, or an ``ObjectRef`` naming a
heap object.  This module provides literal parsing, type names for
values, and console rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from smol.errors import EvaluationError
from smol.model.types import PrimitiveType


@dataclass(frozen=True)
class ObjectRef:
    """Identity of a heap object.

    *name* is unique within a run (``obj0``, ``obj1``, ...); *tag* is the
    class the object was created as.
    """

    name: str
    tag: str

    def __str__(self) -> str:
        return self.name


Value = Union[bool, int, float, str, ObjectRef, None]


# ---------------------------------------------------------------------------
# Literal parsing
# ---------------------------------------------------------------------------

def parse_literal(value: str, data_type: PrimitiveType | None = None) -> Value:
    """Parse an IR literal string into a Python value.

    - "null" -> None
    - "true"/"false" -> bool
    - '"text"' or "'text'" -> str
    - Integer strings -> int
    - Float strings -> float

    With an explicit *data_type* the text is converted to that type.
    """
    if data_type is None and value == "null":
        return None

    if data_type == PrimitiveType.STRING:
        return _unquote(value)

    if data_type == PrimitiveType.BOOLEAN or (
        data_type is None and value in ("true", "false")
    ):
        if value not in ("true", "false"):
            raise EvaluationError(f"Invalid Boolean literal: {value!r}")
        return value == "true"

    if data_type == PrimitiveType.INT:
        try:
            return int(value)
        except ValueError:
            raise EvaluationError(f"Invalid Int literal: {value!r}") from None

    if data_type == PrimitiveType.DOUBLE:
        try:
            return float(value)
        except ValueError:
            raise EvaluationError(f"Invalid Double literal: {value!r}") from None

    # Untyped: quoted string, then numeric detection
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass

    raise EvaluationError(f"Cannot parse literal: {value!r}")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


# ---------------------------------------------------------------------------
# Types of values
# ---------------------------------------------------------------------------

def type_name(value: Value) -> str:
    """Return the SMOL type name of a runtime value."""
    if value is None:
        return "null"
    if isinstance(value, ObjectRef):
        return value.tag
    if isinstance(value, bool):
        return PrimitiveType.BOOLEAN.value
    if isinstance(value, int):
        return PrimitiveType.INT.value
    if isinstance(value, float):
        return PrimitiveType.DOUBLE.value
    if isinstance(value, str):
        return PrimitiveType.STRING.value
    raise EvaluationError(f"Not a runtime value: {value!r}")


def render(value: Value) -> str:
    """Render a value for console output."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
