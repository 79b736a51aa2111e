"""Lowering: turn query answers back into heap values.

Every answer term becomes a token: an IRI its local name, a numeric
literal its lexical form, any other literal its lexical form in double
quotes.  A token naming an existing heap object lowers to that object;
otherwise its shape decides the type (quoted -> String, ``\\d+`` -> Int,
``\\d+.\\d+`` -> Double).  The values are linked into a fresh ``List``
by prepending, so the list runs in reverse answer order.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from decimal import Decimal

from rdflib import Literal, URIRef
from rdflib.term import Node

from smol.errors import LoweringError
from smol.model.types import LIST_CLASS
from smol.runtime._state import Heap
from smol.runtime._values import ObjectRef, Value

from ._settings import Namespaces


INT_RE = re.compile(r"\d+")
FLOAT_RE = re.compile(r"\d+\.\d+")


def term_token(term: Node, namespaces: Namespaces) -> str:
    if isinstance(term, URIRef):
        return namespaces.local_name(str(term))
    if isinstance(term, Literal):
        value = term.toPython()
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            return str(term)
        return f'"{term}"'
    raise LoweringError(f"Cannot lower blank or unsupported node {term!r}")


def classify_literal(token: str, heap: Heap | None = None) -> Value:
    """Resolve *token* to a heap object or a typed primitive."""
    if heap is not None:
        ref = heap.find(token)
        if ref is not None:
            return ref
    if token.startswith('"'):
        return token[1:-1] if len(token) > 1 and token.endswith('"') else token[1:]
    if INT_RE.fullmatch(token):
        return int(token)
    if FLOAT_RE.fullmatch(token):
        return float(token)
    raise LoweringError(f"Query returned unknown object/literal: {token}")


def lower(terms: Iterable[Node], heap: Heap, namespaces: Namespaces) -> ObjectRef | None:
    """Allocate a ``List`` holding *terms*; ``None`` when there are none.

    All terms are classified before the first cell is allocated, so a
    failure leaves the heap untouched.
    """
    contents = [classify_literal(term_token(t, namespaces), heap) for t in terms]
    head: ObjectRef | None = None
    for content in contents:
        head = heap.allocate(LIST_CLASS, {"content": content, "next": head})
    return head
