"""Type names for the SMOL IR.

Types are referenced by name throughout the IR.  Primitive types have
fixed names; every other name refers to a class in the program (or the
builtin ``List``).  Generic arguments (``List<Rock>``) are kept as part of
the name and only the base is used for lookups.
"""

from __future__ import annotations

from enum import Enum


class PrimitiveType(str, Enum):
    """Builtin value types."""

    INT = "Int"
    DOUBLE = "Double"
    STRING = "String"
    BOOLEAN = "Boolean"


PRIMITIVE_NAMES = frozenset(p.value for p in PrimitiveType)

LIST_CLASS = "List"
ENTRY_CLASS = "_Entry_"


def base_type(name: str) -> str:
    """Strip generic arguments: ``List<Rock>`` -> ``List``."""
    return name.split("<", 1)[0].strip()


def is_primitive(name: str) -> bool:
    return base_type(name) in PRIMITIVE_NAMES
