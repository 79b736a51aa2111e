"""Triple sources for the knowledge graph.

Each source generates triples in a fixed order: the heap in object
creation order, the static table in declaration order, the vocabulary
and ontology documents in sorted order.  ``generate(pattern)`` may use
the pattern to skip work (the guard); ``triples`` always filters the
candidates afterwards, so a guarded source yields exactly the same
triples, in the same order, as an unguarded one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import ClassVar

from rdflib import BNode, Graph, Literal, URIRef
from rdflib.compare import to_canonical_graph
from rdflib.namespace import OWL, RDF, RDFS
from rdflib.term import Node

from smol.errors import BridgeError, ExternalServiceError
from smol.model.types import base_type, is_primitive
from smol.runtime._state import Heap
from smol.runtime._static import PLACEHOLDER_RE, StaticTable
from smol.runtime._values import ObjectRef, Value

from ._settings import Namespaces, Source
from ._vocabulary import CORE_VOCABULARY


logger = logging.getLogger(__name__)

Triple = tuple[Node, Node, Node]
Pattern = tuple[Node | None, Node | None, Node | None]

ANY: Pattern = (None, None, None)


def matches(triple: Triple, pattern: Pattern) -> bool:
    return all(p is None or p == t for t, p in zip(triple, pattern))


def sorted_triples(triples: Iterable[Triple]) -> list[Triple]:
    """Deterministic order for triples coming out of an rdflib Graph."""
    return sorted(triples, key=lambda t: tuple(n.n3() for n in t))


def name_blank_nodes(graph: Graph, subject: URIRef) -> list[Triple]:
    """Sorted triples of *graph* with blank nodes renamed to ``<subject>_b<i>``.

    Blank nodes are numbered in the order of the canonical (content-hashed)
    graph, so the same template yields the same IRIs on every parse.
    """
    if not any(isinstance(t, BNode) for triple in graph for t in triple):
        return sorted_triples(graph)

    names: dict[BNode, URIRef] = {}

    def rename(term: Node) -> Node:
        if not isinstance(term, BNode):
            return term
        if term not in names:
            names[term] = URIRef(f"{subject}_b{len(names)}")
        return names[term]

    canonical = sorted_triples(to_canonical_graph(graph).triples((None, None, None)))
    return sorted_triples(tuple(rename(t) for t in triple) for triple in canonical)


def value_node(value: Value, namespaces: Namespaces) -> Node:
    """The RDF node for a runtime value."""
    if value is None:
        return namespaces.lang_iri("null")
    if isinstance(value, ObjectRef):
        return namespaces.run_iri(value.name)
    return Literal(value)


def parse_document(data: str | None, location: str | None, fmt: str | None) -> list[Triple]:
    """Parse an RDF document from text or a location (file path or URL)."""
    graph = Graph()
    try:
        if data is not None:
            graph.parse(data=data, format=fmt or "turtle")
        elif location is not None:
            graph.parse(location, format=fmt)
    except Exception as exc:  # rdflib raises parser-specific and I/O errors
        raise ExternalServiceError(f"Could not load ontology: {exc}") from exc
    triples = sorted_triples(graph)
    logger.debug("parsed %d triples", len(triples))
    return triples


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class TripleSource:
    """Base class: subclasses implement ``generate``."""

    source: ClassVar[Source]

    def generate(self, pattern: Pattern | None) -> Iterator[Triple]:
        raise NotImplementedError

    def triples(self, pattern: Pattern, guarded: bool) -> Iterator[Triple]:
        candidates = self.generate(pattern if guarded else None)
        return (t for t in candidates if matches(t, pattern))


class HeapSource(TripleSource):
    """Lifts every heap object.

    Per object: its ``rdf:type``, one triple per field with predicate
    ``prog:<DeclaringClass>_<field>``, the extra triple for a field
    with a ``models`` predicate, and the class ``models`` template.
    """

    source = Source.HEAP

    def __init__(self, heap: Heap, static: StaticTable, namespaces: Namespaces) -> None:
        self.heap = heap
        self.static = static
        self.namespaces = namespaces
        self._template_cache: dict[tuple, list[Triple]] = {}

    def generate(self, pattern: Pattern | None) -> Iterator[Triple]:
        subject_bound, predicate_bound = (pattern[0], pattern[1]) if pattern else (None, None)
        for ref, fields in self.heap.items():
            subject = self.namespaces.run_iri(ref.name)
            if subject_bound is not None and subject_bound != subject:
                continue
            yield from self._object_triples(ref, fields, subject, predicate_bound)

    def _object_triples(
        self, ref: ObjectRef, fields: dict, subject: URIRef, predicate_bound: Node | None,
    ) -> Iterator[Triple]:
        ns = self.namespaces
        if predicate_bound is None or predicate_bound == RDF.type:
            yield subject, RDF.type, ns.prog_iri(ref.tag)

        for name, value in fields.items():
            owner = self.static.field_owner(ref.tag, name) or ref.tag
            predicate = ns.prog_iri(f"{owner}_{name}")
            if predicate_bound is None or predicate_bound == predicate:
                yield subject, predicate, value_node(value, ns)
            field_models = self.static.models_table.get(f"{owner}.{name}")
            if field_models is not None:
                extra = ns.expand(field_models)
                if predicate_bound is None or predicate_bound == extra:
                    yield subject, extra, value_node(value, ns)

        template, owner = self._class_template(ref.tag)
        if template is not None:
            for triple in self._expand_template(subject, owner, template, fields):
                if predicate_bound is None or predicate_bound == triple[1]:
                    yield triple

    def _class_template(self, tag: str) -> tuple[str | None, str | None]:
        for cls_name in self.static.ancestry(tag):
            if cls_name in self.static.models_table:
                return self.static.models_table[cls_name], cls_name
        return None, None

    def _expand_template(
        self, subject: URIRef, owner: str, template: str, fields: dict,
    ) -> list[Triple]:
        key = (subject, tuple(fields.items()))
        if key in self._template_cache:
            return self._template_cache[key]

        ns = self.namespaces
        body = PLACEHOLDER_RE.sub(
            lambda m: value_node(fields.get(m.group(1)), ns).n3(), template,
        ).strip().rstrip(".")
        document = ns.turtle_header() + f"{subject.n3()} {body} .\n"
        graph = Graph()
        try:
            graph.parse(data=document, format="turtle")
        except (SyntaxError, ValueError) as exc:
            raise BridgeError(f"Invalid models template of class '{owner}': {exc}") from exc
        triples = name_blank_nodes(graph, subject)
        self._template_cache[key] = triples
        return triples


def method_local(cls_name: str, method: str) -> str:
    """Local name of a method declaration; distinct from any field predicate."""
    return f"{cls_name}.{method}"


class StaticTableSource(TripleSource):
    """Declaration triples for classes, fields and methods under ``prog:``."""

    source = Source.STATIC_TABLE

    def __init__(self, static: StaticTable, namespaces: Namespaces) -> None:
        self.static = static
        self.namespaces = namespaces

    def generate(self, pattern: Pattern | None) -> Iterator[Triple]:
        subject_bound, predicate_bound = (pattern[0], pattern[1]) if pattern else (None, None)
        for subject, pairs in self._groups():
            if subject_bound is not None and subject_bound != subject:
                continue
            for predicate, obj in pairs():
                if predicate_bound is None or predicate_bound == predicate:
                    yield subject, predicate, obj

    def _groups(self) -> Iterator[tuple[URIRef, Callable[[], list]]]:
        """(subject, pair factory) per declared entity, in declaration order."""
        ns = self.namespaces
        for cls_name in self.static.classes():
            own_fields = [f for f in self.static.fields_of(cls_name) if f.declared_in == cls_name]
            methods = list(self.static.method_table.get(cls_name, {}).values())
            yield ns.prog_iri(cls_name), lambda c=cls_name, fs=own_fields, ms=methods: self._class_pairs(c, fs, ms)
            for info in own_fields:
                yield ns.prog_iri(f"{cls_name}_{info.name}"), lambda c=cls_name, f=info: self._field_pairs(c, f)
            for info in methods:
                yield ns.prog_iri(method_local(cls_name, info.name)), lambda m=info: self._method_pairs(m)

    def _class_pairs(self, cls_name: str, own_fields: list, methods: list) -> list:
        ns = self.namespaces
        pairs = [(RDF.type, OWL.Class), (RDF.type, ns.lang_iri("Class"))]
        parent = self.static.superclass(cls_name)
        if parent is not None:
            pairs.append((RDFS.subClassOf, ns.prog_iri(parent)))
        pairs.extend((ns.lang_iri("hasField"), ns.prog_iri(f"{cls_name}_{f.name}")) for f in own_fields)
        pairs.extend((ns.lang_iri("hasMethod"), ns.prog_iri(method_local(cls_name, m.name))) for m in methods)
        return pairs

    def _field_pairs(self, cls_name: str, info) -> list:
        ns = self.namespaces
        kind = OWL.DatatypeProperty if is_primitive(info.data_type) else OWL.ObjectProperty
        return [
            (RDF.type, ns.lang_iri("Field")),
            (RDF.type, kind),
            (RDFS.domain, ns.prog_iri(cls_name)),
            (ns.lang_iri("fieldName"), Literal(info.name)),
            (ns.lang_iri("fieldType"), Literal(base_type(info.data_type))),
        ]

    def _method_pairs(self, info) -> list:
        ns = self.namespaces
        pairs = [
            (RDF.type, ns.lang_iri("Method")),
            (ns.lang_iri("methodName"), Literal(info.name)),
        ]
        if info.return_type is not None:
            pairs.append((ns.lang_iri("returnType"), Literal(info.return_type)))
        return pairs


class DocumentSource(TripleSource):
    """A fixed list of triples (vocabulary or external ontology)."""

    def __init__(self, source: Source, triples: list[Triple]) -> None:
        self.source = source
        self._triples = triples

    def generate(self, pattern: Pattern | None) -> Iterator[Triple]:
        return iter(self._triples)


def core_vocabulary(namespaces: Namespaces) -> DocumentSource:
    triples = parse_document(namespaces.turtle_header() + CORE_VOCABULARY, None, "turtle")
    return DocumentSource(Source.CORE_VOCABULARY, triples)
