"""Statement AST nodes for the SMOL IR."""

from __future__ import annotations

from typing import Annotated, Literal, Self, Union

from pydantic import BaseModel, Field, model_validator

from .expressions import Expression


def _check_location(target: object, context: str) -> None:
    """Shared validation: assignment targets must be variables or fields."""
    kind = getattr(target, "kind", None)
    if kind not in ("variable_ref", "field_access"):
        raise ValueError(
            f"{context} target must be a variable or a field access, got {kind!r}"
        )


def _check_declaration(target: object, declares: str | None, context: str) -> None:
    """Only local variables can be declared at their first assignment."""
    if declares is not None and getattr(target, "kind", None) != "variable_ref":
        raise ValueError(f"{context} can only declare a local variable")


class Assignment(BaseModel):
    """``target := value``, optionally declaring a local (``Int x := 1``)."""

    kind: Literal["assignment"] = "assignment"
    target: Expression
    value: Expression
    declares: str | None = None

    @model_validator(mode="after")
    def _target_is_location(self) -> Self:
        _check_location(self.target, "Assignment")
        _check_declaration(self.target, self.declares, "Assignment")
        return self


class IfStatement(BaseModel):
    kind: Literal["if"] = "if"
    condition: Expression
    then_body: list[Statement]
    else_body: list[Statement] = []


class WhileStatement(BaseModel):
    kind: Literal["while"] = "while"
    condition: Expression
    body: list[Statement]


class CallStatement(BaseModel):
    """Method invocation: ``target := callee.method(args)``.

    *target* is None when the return value is discarded.
    """

    kind: Literal["call"] = "call"
    target: Expression | None = None
    callee: Expression
    method: str
    args: list[Expression] = []
    declares: str | None = None

    @model_validator(mode="after")
    def _target_is_location(self) -> Self:
        if self.target is not None:
            _check_location(self.target, "Call")
            _check_declaration(self.target, self.declares, "Call")
        elif self.declares is not None:
            raise ValueError("Call without a target cannot declare a variable")
        return self


class NewStatement(BaseModel):
    """Object construction: ``target := new ClassName(args)``.

    Arguments initialise the class fields in declaration order,
    inherited fields first.
    """

    kind: Literal["new"] = "new"
    target: Expression
    class_name: str
    args: list[Expression] = []
    declares: str | None = None

    @model_validator(mode="after")
    def _target_is_location(self) -> Self:
        _check_location(self.target, "New")
        _check_declaration(self.target, self.declares, "New")
        return self


class ReturnStatement(BaseModel):
    kind: Literal["return"] = "return"
    value: Expression | None = None


class PrintStatement(BaseModel):
    """Write the value of an expression to the console output."""

    kind: Literal["print"] = "print"
    value: Expression


class SkipStatement(BaseModel):
    kind: Literal["skip"] = "skip"


class BreakpointStatement(BaseModel):
    """Stop run-to-completion here; a following step resumes."""

    kind: Literal["breakpoint"] = "breakpoint"


class MemberStatement(BaseModel):
    """``target := member("<class expression>")``.

    Lowers all members of the class expression into a fresh ``List``.
    """

    kind: Literal["member"] = "member"
    target: Expression
    query: Expression
    declares: str | None = None

    @model_validator(mode="after")
    def _target_is_location(self) -> Self:
        _check_location(self.target, "Member")
        _check_declaration(self.target, self.declares, "Member")
        return self


class AccessStatement(BaseModel):
    """``target := access("SELECT ?obj WHERE {...}", p1, p2, ...)``.

    ``%1``..``%n`` in the query are replaced by the parameter values;
    the ``?obj`` column (or the first column) is lowered into a ``List``.
    """

    kind: Literal["access"] = "access"
    target: Expression
    query: Expression
    params: list[Expression] = []
    declares: str | None = None

    @model_validator(mode="after")
    def _target_is_location(self) -> Self:
        _check_location(self.target, "Access")
        _check_declaration(self.target, self.declares, "Access")
        return self


Statement = Annotated[
    Union[
        Assignment,
        IfStatement,
        WhileStatement,
        CallStatement,
        NewStatement,
        ReturnStatement,
        PrintStatement,
        SkipStatement,
        BreakpointStatement,
        MemberStatement,
        AccessStatement,
    ],
    Field(discriminator="kind"),
]

# Rebuild models with recursive Statement references.
Assignment.model_rebuild()
IfStatement.model_rebuild()
WhileStatement.model_rebuild()
CallStatement.model_rebuild()
NewStatement.model_rebuild()
ReturnStatement.model_rebuild()
PrintStatement.model_rebuild()
MemberStatement.model_rebuild()
AccessStatement.model_rebuild()
