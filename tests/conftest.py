"""Shared test helpers for the smol test suite."""

from smol.model.expressions import (
    BinaryExpr,
    BinaryOp,
    FieldAccessExpr,
    LiteralExpr,
    ThisExpr,
    VariableRef,
)
from smol.model.program import ClassDecl, FieldDecl, MethodDecl, Program
from smol.model.statements import (
    AccessStatement,
    Assignment,
    MemberStatement,
    NewStatement,
    ReturnStatement,
)
from smol.model.types import LIST_CLASS, PrimitiveType
from smol.runtime import load
from smol.semantic import Namespaces


DOMAIN = "http://example.org/domain#"
RUN = "http://example.org/run#"


def lit(value, data_type=None):
    """Shorthand for LiteralExpr; non-strings are converted with str()."""
    return LiteralExpr(value=str(value), data_type=data_type)


def string(text):
    return LiteralExpr(value=text, data_type=PrimitiveType.STRING)


def var(name):
    return VariableRef(name=name)


def field(target, name):
    """Field access on a variable name or an expression."""
    if isinstance(target, str):
        target = VariableRef(name=target)
    return FieldAccessExpr(target=target, field=name)


def this_field(name):
    return FieldAccessExpr(target=ThisExpr(), field=name)


def binop(op, left, right):
    return BinaryExpr(op=op, left=left, right=right)


def assign(target, value, declares=None):
    if isinstance(target, str):
        target = VariableRef(name=target)
    return Assignment(target=target, value=value, declares=declares)


def new(target, class_name, *args, declares=None):
    if isinstance(target, str):
        target = VariableRef(name=target)
    return NewStatement(target=target, class_name=class_name, args=list(args), declares=declares)


def member(target, expression, declares="List<Object>"):
    return MemberStatement(target=var(target), query=string(expression), declares=declares)


def access(target, query, *params, declares="List<Object>"):
    return AccessStatement(
        target=var(target), query=string(query), params=list(params), declares=declares,
    )


def make_program(main, classes=()):
    return Program(classes=list(classes), main=list(main))


def run_program(program):
    """Load and run *program*; return (interpreter, printed lines)."""
    lines = []
    interp = load(program, output=lines.append)
    interp.run()
    return interp, lines


def make_namespaces():
    return Namespaces(domain=DOMAIN, run=RUN)


def list_values(heap, head):
    """Contents of a lowered List, in traversal order."""
    values = []
    while head is not None:
        assert head.tag == LIST_CLASS
        cell = heap[head]
        values.append(cell["content"])
        head = cell["next"]
    return values


# ---------------------------------------------------------------------------
# A small geological model
# ---------------------------------------------------------------------------

def geology_classes():
    """Layers stacked on top of each other.

    ``Layer`` exports its thickness under ``domain:thickness`` and types
    every instance as ``domain:GeoUnit``; ``Sandstone`` overrides the
    template, ``Shale`` inherits it.
    """
    return [
        ClassDecl(
            name="Layer",
            fields=[
                FieldDecl(name="thickness", data_type="Double", models="domain:thickness"),
                FieldDecl(name="below", data_type="Layer"),
            ],
            methods=[
                MethodDecl(
                    name="depth",
                    return_type="Double",
                    body=[],
                    abstract=True,
                ),
            ],
            models="a domain:GeoUnit",
            abstract=True,
        ),
        ClassDecl(
            name="Sandstone",
            extends="Layer",
            methods=[
                MethodDecl(
                    name="depth",
                    return_type="Double",
                    body=[
                        ReturnStatement(value=this_field("thickness")),
                    ],
                ),
            ],
            models="a domain:Sandstone, domain:GeoUnit ; domain:porous true",
        ),
        ClassDecl(name="Shale", extends="Layer"),
    ]


def geology_main(*extra):
    """``bottom`` (Shale, obj1) under ``top`` (Sandstone, obj2), then *extra*."""
    return [
        new("bottom", "Shale", lit("2.5"), lit("null"), declares="Layer"),
        new("top", "Sandstone", lit("1.0"), var("bottom"), declares="Layer"),
        *extra,
    ]


def geology_program(*extra):
    return make_program(geology_main(*extra), geology_classes())
