"""Classes, methods and the top-level Program for the SMOL IR."""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, model_validator

from .statements import Statement


def _check_unique(names: list[str], what: str, context: str) -> None:
    """Shared validation: no duplicate names within one declaration."""
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ValueError(f"Duplicate {what} '{name}' in {context}")
        seen.add(name)


class Param(BaseModel):
    name: str
    data_type: str


class FieldDecl(BaseModel):
    """A field of a class.

    *models* optionally names a predicate (``domain:depth``) under which
    the field value is additionally exported to the knowledge graph.
    """

    name: str
    data_type: str
    models: str | None = None


class MethodDecl(BaseModel):
    name: str
    params: list[Param] = []
    return_type: str | None = None
    body: list[Statement] = []
    abstract: bool = False

    @model_validator(mode="after")
    def _unique_params(self) -> Self:
        _check_unique([p.name for p in self.params], "parameter", f"method '{self.name}'")
        if self.abstract and self.body:
            raise ValueError(f"Abstract method '{self.name}' cannot have a body")
        return self


class ClassDecl(BaseModel):
    """A class declaration.

    *models* is a Turtle predicate-object list describing every instance,
    e.g. ``"a domain:Layer ; domain:thickness %size"``.  ``%field`` is
    replaced by the field's value when the heap is lifted.
    """

    name: str
    extends: str | None = None
    fields: list[FieldDecl] = []
    methods: list[MethodDecl] = []
    models: str | None = None
    abstract: bool = False

    @model_validator(mode="after")
    def _unique_members(self) -> Self:
        context = f"class '{self.name}'"
        _check_unique([f.name for f in self.fields], "field", context)
        _check_unique([m.name for m in self.methods], "method", context)
        if self.extends == self.name:
            raise ValueError(f"Class '{self.name}' cannot extend itself")
        return self


class Program(BaseModel):
    """A complete program: class declarations plus the main block."""

    classes: list[ClassDecl] = []
    main: list[Statement] = []
