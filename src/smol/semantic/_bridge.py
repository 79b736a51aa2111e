"""The semantic bridge: lift runtime state into a knowledge graph and query it.

Nothing is kept between calls.  Each operation assembles a fresh
``SourceUnionStore`` from the ``TripleSettings`` it is given, so the
graph always reflects the heap at the instant of the call.  Only the
parsed vocabulary and ontology documents are cached; they do not depend
on program state.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TextIO

from rdflib import Graph, Literal
from rdflib.plugins.sparql import prepareQuery
from rdflib.term import Node

from smol.errors import BridgeError, ExternalServiceError, QueryError, SmolError
from smol.runtime._state import RuntimeState
from smol.runtime._static import StaticTable
from smol.runtime._values import ObjectRef, Value

from ._lowering import lower
from ._reasoner import OwlrlReasoner, Reasoner
from ._settings import Namespaces, ReasonerMode, Source, TripleSettings
from ._sources import (
    DocumentSource,
    HeapSource,
    StaticTableSource,
    TripleSource,
    core_vocabulary,
    parse_document,
    value_node,
)
from ._store import SourceUnionStore, SourceView


logger = logging.getLogger(__name__)

PARAM_RE = re.compile(r"%(\d+)")


@dataclass(frozen=True)
class QueryResult:
    """Variable bindings of a SELECT query, in solution order."""

    variables: tuple[str, ...]
    rows: tuple[dict[str, Node], ...]

    def column(self, name: str | None = None) -> list[Node]:
        """Values bound to *name* (default ``obj``, else the first variable)."""
        if name is None:
            if "obj" in self.variables:
                name = "obj"
            elif self.variables:
                name = self.variables[0]
            else:
                return []
        return [row[name] for row in self.rows if row.get(name) is not None]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)


class SemanticBridge:
    """Knowledge-graph view of a running program.

    Parameters
    ----------
    state : RuntimeState
        The live state; read on every call, never copied.
    static : StaticTable
        Class tables of the program.
    namespaces : Namespaces, optional
        Prefix IRIs; a fresh ``run:`` prefix is minted when omitted.
    ontology : str, optional
        Text of the external domain ontology.
    ontology_location : str, optional
        File path or URL of the ontology, used when *ontology* is None.
    ontology_format : str, optional
        rdflib parser name; rdflib guesses it for locations when None.
    reasoner : Reasoner, optional
        Used when the reasoner mode is not ``off`` (default
        ``OwlrlReasoner()``).
    """

    def __init__(
        self,
        state: RuntimeState,
        static: StaticTable,
        namespaces: Namespaces | None = None,
        *,
        ontology: str | None = None,
        ontology_location: str | None = None,
        ontology_format: str | None = None,
        reasoner: Reasoner | None = None,
    ) -> None:
        self.state = state
        self.static = static
        self.namespaces = namespaces or Namespaces()
        self.ontology = ontology
        self.ontology_location = ontology_location
        self.ontology_format = ontology_format
        self.reasoner = reasoner if reasoner is not None else OwlrlReasoner()
        self._vocabulary: DocumentSource | None = None
        self._ontology: DocumentSource | None = None

    # -----------------------------------------------------------------------
    # Graph assembly
    # -----------------------------------------------------------------------

    def _source(self, source: Source) -> TripleSource:
        if source == Source.HEAP:
            return HeapSource(self.state.heap, self.static, self.namespaces)
        if source == Source.STATIC_TABLE:
            return StaticTableSource(self.static, self.namespaces)
        if source == Source.CORE_VOCABULARY:
            if self._vocabulary is None:
                self._vocabulary = core_vocabulary(self.namespaces)
            return self._vocabulary
        if self._ontology is None:
            triples = []
            if self.ontology is not None or self.ontology_location is not None:
                triples = parse_document(self.ontology, self.ontology_location, self.ontology_format)
                logger.info("loaded external ontology: %d triples", len(triples))
            self._ontology = DocumentSource(Source.EXTERNAL_ONTOLOGY, triples)
        return self._ontology

    def store(self, settings: TripleSettings) -> SourceUnionStore:
        """A read-only store over the sources *settings* enables."""
        views = [
            SourceView(
                self._source(source),
                virtual=settings.virtual(source),
                guarded=settings.guarded(source),
            )
            for source in Source
            if settings.source_enabled(source)
        ]
        return SourceUnionStore(views)

    def ordered_triples(self, settings: TripleSettings) -> list:
        """Every triple of the graph in source order."""
        return self.store(settings).ordered()

    def build_graph(self, settings: TripleSettings) -> Graph:
        """Materialize the graph into an in-memory rdflib ``Graph``."""
        graph = self.namespaces.bind(Graph())
        for triple in self.ordered_triples(settings):
            graph.add(triple)
        return graph

    def _query_graph(self, settings: TripleSettings) -> Graph:
        if settings.reasoner == ReasonerMode.OFF:
            return Graph(store=self.store(settings))
        return self._expand(self.build_graph(settings), settings.reasoner)

    def _expand(self, graph: Graph, mode: ReasonerMode) -> Graph:
        try:
            return self.reasoner.expand(graph, mode)
        except SmolError:
            raise
        except Exception as exc:
            raise ExternalServiceError(f"Reasoner failed: {exc}") from exc

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    def query(self, sparql: str, settings: TripleSettings) -> QueryResult:
        """Run a SPARQL SELECT query against the current graph."""
        prefixes = self.namespaces.prefix_map()
        try:
            prepared = prepareQuery(sparql, initNs=prefixes)
        except Exception as exc:
            raise QueryError(f"Invalid query: {exc}") from exc
        if prepared.algebra.name != "SelectQuery":
            raise QueryError("Only SELECT queries are supported")

        graph = self._query_graph(settings)
        try:
            result = graph.query(prepared, initNs=prefixes)
            variables = tuple(str(v) for v in result.vars or ())
            rows = tuple(row.asdict() for row in result)
        except BridgeError:
            raise
        except Exception as exc:
            raise QueryError(f"Query evaluation failed: {exc}") from exc
        logger.debug("query returned %d row(s)", len(rows))
        return QueryResult(variables=variables, rows=rows)

    def class_members(self, expression: str, settings: TripleSettings) -> list[Node]:
        """Individuals of a class expression, in order of first appearance.

        *expression* is a named class (``prefix:Name`` or ``<iri>``) or
        several joined with ``and`` / ``or``; ``and`` binds tighter.
        """
        members = self.query(self._members_query(expression), settings).column("obj")
        order: dict[Node, int] = {}
        for subject, _, _ in self.ordered_triples(settings):
            order.setdefault(subject, len(order))
        return sorted(members, key=lambda m: (m not in order, order.get(m, 0), m.n3()))

    def _members_query(self, expression: str) -> str:
        blocks = []
        for disjunct in re.split(r"\s+or\s+", expression.strip()):
            conjuncts = re.split(r"\s+and\s+", disjunct.strip())
            if any(not c or re.search(r"\s", c) for c in conjuncts):
                raise QueryError(f"Malformed class expression: {expression!r}")
            blocks.append(
                " ".join(f"?obj a {self.namespaces.expand(c).n3()} ." for c in conjuncts)
            )
        if len(blocks) == 1:
            where = blocks[0]
        else:
            where = " UNION ".join(f"{{ {b} }}" for b in blocks)
        return f"SELECT DISTINCT ?obj WHERE {{ {where} }}"

    def check_consistency(self, settings: TripleSettings) -> bool:
        if settings.reasoner == ReasonerMode.OFF:
            logger.debug("reasoner off: consistency check skipped")
            return True
        graph = self.build_graph(settings)
        try:
            consistent = self.reasoner.is_consistent(graph, settings.reasoner)
        except SmolError:
            raise
        except Exception as exc:
            raise ExternalServiceError(f"Reasoner failed: {exc}") from exc
        logger.info("consistency (%s): %s", settings.reasoner.value, consistent)
        return consistent

    def dump(self, sink: TextIO, settings: TripleSettings, format: str = "turtle") -> int:
        """Serialize the current graph to *sink*; returns the triple count."""
        graph = self.build_graph(settings)
        sink.write(graph.serialize(format=format))
        return len(graph)

    def lower(self, terms: Iterable[Node]) -> ObjectRef | None:
        return lower(terms, self.state.heap, self.namespaces)

    def bind_parameters(self, query: str, params: Sequence[Value]) -> str:
        """Replace ``%1`` .. ``%n`` in *query* with the parameter values."""
        for index in PARAM_RE.findall(query):
            if not 1 <= int(index) <= len(params):
                raise QueryError(
                    f"Query refers to %{index} but {len(params)} parameter(s) were given"
                )
        terms = [self._param_term(p) for p in params]
        return PARAM_RE.sub(lambda m: terms[int(m.group(1)) - 1], query)

    def _param_term(self, value: Value) -> str:
        if isinstance(value, (ObjectRef, type(None))):
            return value_node(value, self.namespaces).n3()
        return Literal(value).n3()
