"""Static table: class hierarchy, fields, methods and semantic templates.

Built once from a ``Program`` and read-only afterwards.  Shared by the
interpreter (field layout, method lookup) and the semantic bridge
(static-table triples, models templates).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from smol.errors import StructuralError
from smol.model.program import ClassDecl, Param, Program
from smol.model.types import LIST_CLASS, base_type

from ._stdlib import BUILTIN_CLASSES


PLACEHOLDER_RE = re.compile(r"%(\w+)")


@dataclass(frozen=True)
class FieldInfo:
    name: str
    data_type: str
    declared_in: str


@dataclass(frozen=True)
class MethodInfo:
    name: str
    params: tuple[Param, ...]
    return_type: str | None
    body: tuple
    declared_in: str
    abstract: bool = False


class StaticTable:
    """Immutable class tables.

    Parameters
    ----------
    field_table : Mapping[str, tuple[FieldInfo, ...]]
        Class -> all fields in constructor order (inherited first).
    method_table : Mapping[str, Mapping[str, MethodInfo]]
        Class -> methods declared directly in that class.
    hierarchy : Mapping[str, tuple[str, ...]]
        Class -> direct subclasses, in declaration order.  Every class
        is a key.
    models_table : Mapping[str, str]
        ``"C"`` -> class template, ``"C.f"`` -> field predicate.
    abstract_classes : frozenset[str]
        Classes that cannot be instantiated.
    """

    def __init__(
        self,
        field_table: Mapping[str, tuple[FieldInfo, ...]],
        method_table: Mapping[str, Mapping[str, MethodInfo]],
        hierarchy: Mapping[str, tuple[str, ...]],
        models_table: Mapping[str, str] | None = None,
        abstract_classes: frozenset[str] = frozenset(),
    ) -> None:
        self.field_table = MappingProxyType(dict(field_table))
        self.method_table = MappingProxyType(
            {c: MappingProxyType(dict(ms)) for c, ms in method_table.items()}
        )
        self.hierarchy = MappingProxyType(
            {c: tuple(subs) for c, subs in hierarchy.items()}
        )
        self.models_table = MappingProxyType(dict(models_table or {}))
        self.abstract_classes = frozenset(abstract_classes)

    # -----------------------------------------------------------------------
    # Construction
    # -----------------------------------------------------------------------

    @classmethod
    def from_program(cls, program: Program) -> StaticTable:
        """Build the tables for *program* plus the builtin classes."""
        decls: dict[str, ClassDecl] = {}
        diagnostics: list[str] = []

        for decl in BUILTIN_CLASSES:
            decls[decl.name] = decl
        for decl in program.classes:
            if decl.name == LIST_CLASS:
                diagnostics.append(f"Class '{LIST_CLASS}' is builtin and cannot be redefined")
            elif decl.name in decls:
                diagnostics.append(f"Duplicate class '{decl.name}'")
            else:
                decls[decl.name] = decl

        for decl in decls.values():
            if decl.extends is not None and decl.extends not in decls:
                diagnostics.append(
                    f"Class '{decl.name}' extends unknown class '{decl.extends}'"
                )
        if diagnostics:
            raise StructuralError("Invalid class table", diagnostics)

        for decl in decls.values():
            seen = [decl.name]
            parent = decl.extends
            while parent is not None:
                if parent in seen:
                    diagnostics.append(
                        f"Inheritance cycle: {' -> '.join(seen + [parent])}"
                    )
                    break
                seen.append(parent)
                parent = decls[parent].extends
        if diagnostics:
            raise StructuralError("Invalid class table", diagnostics)

        hierarchy: dict[str, list[str]] = {name: [] for name in decls}
        for decl in decls.values():
            if decl.extends is not None:
                hierarchy[decl.extends].append(decl.name)

        field_table: dict[str, tuple[FieldInfo, ...]] = {}

        def _fields(name: str) -> tuple[FieldInfo, ...]:
            if name in field_table:
                return field_table[name]
            decl = decls[name]
            inherited = _fields(decl.extends) if decl.extends else ()
            own = tuple(FieldInfo(f.name, f.data_type, name) for f in decl.fields)
            clash = {f.name for f in inherited} & {f.name for f in own}
            if clash:
                diagnostics.append(
                    f"Class '{name}' redeclares inherited field(s) {sorted(clash)}"
                )
            field_table[name] = inherited + own
            return field_table[name]

        for name in decls:
            _fields(name)

        method_table: dict[str, dict[str, MethodInfo]] = {}
        models_table: dict[str, str] = {}
        for name, decl in decls.items():
            method_table[name] = {
                m.name: MethodInfo(
                    name=m.name,
                    params=tuple(m.params),
                    return_type=m.return_type,
                    body=tuple(m.body),
                    declared_in=name,
                    abstract=m.abstract,
                )
                for m in decl.methods
            }
            if decl.models is not None:
                models_table[name] = decl.models
                known = {f.name for f in field_table[name]}
                for placeholder in PLACEHOLDER_RE.findall(decl.models):
                    if placeholder not in known:
                        diagnostics.append(
                            f"Template of class '{name}' refers to unknown field '%{placeholder}'"
                        )
            for f in decl.fields:
                if f.models is not None:
                    models_table[f"{name}.{f.name}"] = f.models

        if diagnostics:
            raise StructuralError("Invalid class table", diagnostics)

        return cls(
            field_table=field_table,
            method_table=method_table,
            hierarchy=hierarchy,
            models_table=models_table,
            abstract_classes=frozenset(d.name for d in decls.values() if d.abstract),
        )

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return not self.hierarchy

    def classes(self) -> tuple[str, ...]:
        """All class names in declaration order (builtins first)."""
        return tuple(self.hierarchy)

    def has_class(self, name: str) -> bool:
        return base_type(name) in self.hierarchy

    def superclass(self, name: str) -> str | None:
        """Direct superclass, found by walking the hierarchy map."""
        for parent, subclasses in self.hierarchy.items():
            if name in subclasses:
                return parent
        return None

    def ancestry(self, name: str) -> list[str]:
        """*name* followed by its superclasses up to the root."""
        chain = []
        current: str | None = base_type(name)
        while current is not None:
            chain.append(current)
            current = self.superclass(current)
        return chain

    def is_subclass(self, name: str, ancestor: str) -> bool:
        return base_type(ancestor) in self.ancestry(name)

    def fields_of(self, name: str) -> tuple[FieldInfo, ...]:
        return self.field_table.get(base_type(name), ())

    def field_owner(self, name: str, field: str) -> str | None:
        """The class that declares *field* for instances of *name*."""
        for info in self.fields_of(name):
            if info.name == field:
                return info.declared_in
        return None

    def resolve_method(self, name: str, method: str) -> MethodInfo | None:
        """Find the implementation of *method* for class *name*.

        Walks up the hierarchy; abstract declarations are skipped so a
        concrete override anywhere below wins.
        """
        for cls_name in self.ancestry(name):
            info = self.method_table.get(cls_name, {}).get(method)
            if info is not None and not info.abstract:
                return info
        return None

    def defines_method(self, method: str) -> bool:
        return any(method in ms for ms in self.method_table.values())

    def __str__(self) -> str:
        lines = []
        for name in self.classes():
            parent = self.superclass(name)
            header = f"class {name}" + (f" extends {parent}" if parent else "")
            if name in self.abstract_classes:
                header = "abstract " + header
            lines.append(header)
            fields = ", ".join(f"{f.data_type} {f.name}" for f in self.fields_of(name))
            lines.append(f"  fields: {fields}")
            for info in self.method_table.get(name, {}).values():
                params = ", ".join(f"{p.data_type} {p.name}" for p in info.params)
                lines.append(f"  {info.return_type or 'Unit'} {info.name}({params})")
            if name in self.models_table:
                lines.append(f"  models: {self.models_table[name]!r}")
        return "\n".join(lines)
