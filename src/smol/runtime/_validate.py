"""Structural checks run before execution.

Type checking proper is done by the front-end; this pass only rejects
programs the interpreter could not run sensibly: instantiation of
unknown or abstract classes, calls to methods no class defines, and free
variables.  A variable is bound in a body if it is a parameter or is
declared by some statement of that body.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from smol.errors import StructuralError
from smol.model.program import Program

from ._static import StaticTable


def _walk_expr(expr) -> Iterator:
    yield expr
    if expr.kind == "field_access":
        yield from _walk_expr(expr.target)
    elif expr.kind == "binary":
        yield from _walk_expr(expr.left)
        yield from _walk_expr(expr.right)
    elif expr.kind == "unary":
        yield from _walk_expr(expr.operand)


def _walk_stmts(stmts: Iterable) -> Iterator:
    for stmt in stmts:
        yield stmt
        if stmt.kind == "if":
            yield from _walk_stmts(stmt.then_body)
            yield from _walk_stmts(stmt.else_body)
        elif stmt.kind == "while":
            yield from _walk_stmts(stmt.body)


def _stmt_exprs(stmt) -> list:
    """Every expression a statement evaluates (targets included)."""
    kind = stmt.kind
    if kind == "assignment":
        return [stmt.target, stmt.value]
    if kind in ("if", "while"):
        return [stmt.condition]
    if kind == "call":
        exprs = [stmt.callee, *stmt.args]
        return exprs + ([stmt.target] if stmt.target is not None else [])
    if kind == "new":
        return [stmt.target, *stmt.args]
    if kind == "return":
        return [stmt.value] if stmt.value is not None else []
    if kind == "print":
        return [stmt.value]
    if kind == "member":
        return [stmt.target, stmt.query]
    if kind == "access":
        return [stmt.target, stmt.query, *stmt.params]
    return []


def _declared_names(stmts: Iterable) -> set[str]:
    names = set()
    for stmt in _walk_stmts(stmts):
        if getattr(stmt, "declares", None) is not None:
            names.add(stmt.target.name)
    return names


def _check_body(body: list, params: Iterable[str], where: str, static: StaticTable) -> list[str]:
    diagnostics: list[str] = []
    bound = set(params) | _declared_names(body)
    reported: set[str] = set()

    for stmt in _walk_stmts(body):
        if stmt.kind == "new":
            if not static.has_class(stmt.class_name):
                diagnostics.append(f"{where}: unknown class '{stmt.class_name}'")
            elif stmt.class_name in static.abstract_classes:
                diagnostics.append(f"{where}: cannot instantiate abstract class '{stmt.class_name}'")
        elif stmt.kind == "call" and not static.defines_method(stmt.method):
            diagnostics.append(f"{where}: no class defines method '{stmt.method}'")

        for expr in _stmt_exprs(stmt):
            for node in _walk_expr(expr):
                if node.kind == "variable_ref" and node.name not in bound:
                    if node.name not in reported:
                        reported.add(node.name)
                        diagnostics.append(f"{where}: free variable '{node.name}'")

    return diagnostics


def check_program(program: Program, static: StaticTable) -> list[str]:
    """Return structural diagnostics for *program* (empty when valid)."""
    diagnostics: list[str] = []
    for decl in program.classes:
        for method in decl.methods:
            diagnostics.extend(
                _check_body(
                    method.body,
                    (p.name for p in method.params),
                    f"{decl.name}.{method.name}",
                    static,
                )
            )
    diagnostics.extend(_check_body(program.main, (), "main", static))
    return diagnostics


def validate_program(program: Program, static: StaticTable) -> None:
    """Raise ``StructuralError`` if *program* fails the structural checks."""
    diagnostics = check_program(program, static)
    if diagnostics:
        raise StructuralError("Program rejected", diagnostics)
