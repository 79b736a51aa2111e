"""Builtin classes available to every program.

``List`` is the cell type produced by query lowering: ``content`` holds
the value, ``next`` the rest of the list (``null`` at the end).  Its
methods are ordinary IR so they step like user code.
"""

from __future__ import annotations

from smol.model.expressions import (
    BinaryExpr,
    BinaryOp,
    FieldAccessExpr,
    LiteralExpr,
    ThisExpr,
    VariableRef,
)
from smol.model.program import ClassDecl, FieldDecl, MethodDecl, Param
from smol.model.statements import CallStatement, IfStatement, ReturnStatement
from smol.model.types import LIST_CLASS, PrimitiveType


def _this(field: str) -> FieldAccessExpr:
    return FieldAccessExpr(target=ThisExpr(), field=field)


_NEXT_IS_NULL = BinaryExpr(
    op=BinaryOp.EQ, left=_this("next"), right=LiteralExpr(value="null"),
)

_LENGTH = MethodDecl(
    name="length",
    return_type="Int",
    body=[
        IfStatement(
            condition=_NEXT_IS_NULL,
            then_body=[ReturnStatement(value=LiteralExpr(value="1", data_type=PrimitiveType.INT))],
            else_body=[
                CallStatement(
                    target=VariableRef(name="n"),
                    declares="Int",
                    callee=_this("next"),
                    method="length",
                ),
                ReturnStatement(
                    value=BinaryExpr(
                        op=BinaryOp.ADD,
                        left=VariableRef(name="n"),
                        right=LiteralExpr(value="1", data_type=PrimitiveType.INT),
                    ),
                ),
            ],
        ),
    ],
)

_GET = MethodDecl(
    name="get",
    params=[Param(name="i", data_type="Int")],
    return_type="T",
    body=[
        IfStatement(
            condition=BinaryExpr(
                op=BinaryOp.EQ,
                left=VariableRef(name="i"),
                right=LiteralExpr(value="0", data_type=PrimitiveType.INT),
            ),
            then_body=[ReturnStatement(value=_this("content"))],
            else_body=[
                CallStatement(
                    target=VariableRef(name="r"),
                    declares="T",
                    callee=_this("next"),
                    method="get",
                    args=[
                        BinaryExpr(
                            op=BinaryOp.SUB,
                            left=VariableRef(name="i"),
                            right=LiteralExpr(value="1", data_type=PrimitiveType.INT),
                        ),
                    ],
                ),
                ReturnStatement(value=VariableRef(name="r")),
            ],
        ),
    ],
)

LIST_DECL = ClassDecl(
    name=LIST_CLASS,
    fields=[
        FieldDecl(name="content", data_type="T"),
        FieldDecl(name="next", data_type="List<T>"),
    ],
    methods=[_LENGTH, _GET],
)

BUILTIN_CLASSES: tuple[ClassDecl, ...] = (LIST_DECL,)
