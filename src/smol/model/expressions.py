"""Expression AST nodes for the SMOL IR."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from .types import PrimitiveType


class BinaryOp(str, Enum):
    ADD = "ADD"
    SUB = "SUB"
    MUL = "MUL"
    DIV = "DIV"
    MOD = "MOD"
    EQ = "EQ"
    NE = "NE"
    GT = "GT"
    GE = "GE"
    LT = "LT"
    LE = "LE"
    AND = "AND"
    OR = "OR"


class UnaryOp(str, Enum):
    NEG = "NEG"
    NOT = "NOT"


class LiteralExpr(BaseModel):
    """A typed constant value (e.g. 42, 3.14, "abc", true, null)."""

    kind: Literal["literal"] = "literal"
    value: str
    data_type: PrimitiveType | None = None


class VariableRef(BaseModel):
    """Reference to a local variable or parameter by name."""

    kind: Literal["variable_ref"] = "variable_ref"
    name: str


class ThisExpr(BaseModel):
    """The object owning the current frame."""

    kind: Literal["this"] = "this"


class FieldAccessExpr(BaseModel):
    """Field read on an object: expr.field."""

    kind: Literal["field_access"] = "field_access"
    target: Expression
    field: str


class BinaryExpr(BaseModel):
    kind: Literal["binary"] = "binary"
    op: BinaryOp
    left: Expression
    right: Expression


class UnaryExpr(BaseModel):
    kind: Literal["unary"] = "unary"
    op: UnaryOp
    operand: Expression


Expression = Annotated[
    Union[
        LiteralExpr,
        VariableRef,
        ThisExpr,
        FieldAccessExpr,
        BinaryExpr,
        UnaryExpr,
    ],
    Field(discriminator="kind"),
]

# Rebuild models with recursive Expression references.
FieldAccessExpr.model_rebuild()
BinaryExpr.model_rebuild()
UnaryExpr.model_rebuild()
